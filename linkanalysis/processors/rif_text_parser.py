"""
Parser for free-text COAF RIF communications
"""

import re
from typing import Dict, List, Optional

from loguru import logger

from .coercion import digits_only, parse_brl_amount
from .report_formatting import format_brl
from linkanalysis.core.models import ParsedTable, Row
from linkanalysis.core.report_models import (
    BankAccount, BasicInformation, InvolvedParty, RifHeader, RifSummary,
    RifTextAlert, RifTextReport, RifTransaction,
)

HEADER_PREFIXES = [
    ("comunicacao", re.compile(r"^COMUNICAÇÃO\s*:?\s*")),
    ("id", re.compile(r"^ID(?![A-Za-zÀ-ÿ])\s*:?\s*")),
    ("rif", re.compile(r"^RIF:\s*")),
    ("indexador", re.compile(r"^INDEXADOR:\s*")),
    ("titulares", re.compile(r"^Titular\(es\):\s*")),
    ("comunicante", re.compile(r"^Comunicante:\s*")),
    ("segmento", re.compile(r"^Segmento:\s*")),
    ("periodo", re.compile(r"^Período:\s*")),
]

SECTION_HEADERS = [
    ("envolvidos", "ENVOLVIDOS:"),
    ("informacoes_basicas", "Informações básicas de cadastro"),
    ("creditos", "CRÉDITOS:"),
    ("debitos", "DÉBITOS:"),
    ("creditos_outros", "OUTRAS CONTRAPARTES DE CREDITO:"),
    ("creditos_outros", "OUTRAS CONTRAPARTES DE CRÉDITO:"),
    ("debitos_outros", "OUTRAS CONTRAPARTES DE DÉBITO:"),
    ("debitos_outros", "OUTRAS CONTRAPARTES DE DEBITO:"),
]

INVOLVED_RE = re.compile(r"^([\d./-]+)\s*-\s*(.+?)\s*-\s*(Beneficiário|Remetente|Titular)$")
NAME_CPF_RE = re.compile(r"(\w+\s+\w+\s+\w+),\s*CPF\s*([\d./-]+)")
AGE_RE = re.compile(r"idade\s*(\d+)\s*anos")
ADDRESS_RE = re.compile(r"endereço cadastrado:\s*([^,]+,\s*[^,]+\s*-\s*[^,]+\s*-\s*[A-Z]{2})")
DECLARED_INCOME_RE = re.compile(r"Renda informada pelo cliente:\s*R\$\s*([\d.,]+)")
PRESUMED_INCOME_RE = re.compile(r"Renda presumida:\s*R\$\s*([\d.,]+)")
TRANSACTION_RE = re.compile(
    r"^\s*-\s*([\d.,]+)%\s*\(R\$\s*([\d.,]+)\s*em\s*(\d+)\s*transa[çc](?:[õo]es|[ãa]o)\)\s*"
    r"(?:via|para)\s*(?:CPF|CNPJ)\s*([\d./-]+)\s*\(([^)]+)\)"
)
BANK_RE = re.compile(
    r"banco\s*(\d+)\s*(?:-\s*([^,]+))?,\s*agência\s*(?:número\s*)?(\d+)\s*e\s*conta\s*(?:número\s*)?([\d-]+)",
    re.IGNORECASE,
)

HIGH_VOLUME_THRESHOLD = 100000
MANY_COUNTERPARTIES_THRESHOLD = 20
SMALL_TRANSACTION_LIMIT = 10000
STRUCTURING_COUNT_THRESHOLD = 10


class RifTextParser:
    """
    Extracts structure from a pasted RIF communication:
    1. Header fields from the first 20 lines
    2. Lines grouped under recognized section headers
    3. Per-section regexes for parties, registration data and transactions
    4. Summary volumes and rule-based alerts
    """

    def parse(self, text: str) -> RifTextReport:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        logger.info(f"Parsing RIF text with {len(lines)} lines")

        header = self.parse_header(lines)
        sections = self.extract_sections(lines)

        involved = self.parse_involved(sections.get("envolvidos", []))
        basic = self.parse_basic_information(sections.get("informacoes_basicas", []))

        skipped = 0
        credits, misses = self.parse_transactions(sections.get("creditos", []), "credito")
        skipped += misses
        debits, misses = self.parse_transactions(sections.get("debitos", []), "debito")
        skipped += misses
        extra_credits, misses = self.parse_transactions(sections.get("creditos_outros", []), "credito", True)
        skipped += misses
        extra_debits, misses = self.parse_transactions(sections.get("debitos_outros", []), "debito", True)
        skipped += misses

        credits += extra_credits
        debits += extra_debits

        report = RifTextReport(
            cabecalho=header,
            envolvidos=involved,
            informacoes_basicas=basic,
            creditos=credits,
            debitos=debits,
            resumo=self.calculate_summary(credits, debits, header.periodo),
            alertas=self.identify_alerts(credits, debits),
            skipped_lines=skipped,
        )
        logger.info(
            f"RIF {header.rif or '?'}: {len(involved)} parties, {len(credits)} credits, "
            f"{len(debits)} debits, {len(report.alertas)} alerts"
        )
        return report

    @staticmethod
    def parse_header(lines: List[str]) -> RifHeader:
        values: Dict[str, str] = {}
        for line in lines[:20]:
            for field_name, prefix in HEADER_PREFIXES:
                match = prefix.match(line)
                if match:
                    values.setdefault(field_name, line[match.end():].strip())
                    break
        return RifHeader(**values)

    @staticmethod
    def extract_sections(lines: List[str]) -> Dict[str, List[str]]:
        sections: Dict[str, List[str]] = {}
        current: Optional[str] = None
        for line in lines:
            header = next((name for name, prefix in SECTION_HEADERS if line.startswith(prefix)), None)
            if header is not None:
                current = header
                sections.setdefault(current, [])
            elif current is not None:
                sections[current].append(line)
        return sections

    @staticmethod
    def parse_involved(lines: List[str]) -> List[InvolvedParty]:
        parties = []
        for line in lines:
            match = INVOLVED_RE.match(line)
            if not match:
                logger.debug(f"Unrecognized ENVOLVIDOS line: {line}")
                continue
            document, name, role = match.groups()
            document = digits_only(document)
            parties.append(InvolvedParty(
                documento=document,
                nome=name.strip(),
                tipo_documento="CPF" if len(document) == 11 else "CNPJ",
                papel=role,
            ))
        return parties

    @staticmethod
    def parse_basic_information(lines: List[str]) -> BasicInformation:
        full_text = " ".join(lines)
        info = BasicInformation()

        match = NAME_CPF_RE.search(full_text)
        if match:
            info.nome = match.group(1)
            info.cpf = digits_only(match.group(2))

        match = AGE_RE.search(full_text)
        if match:
            info.idade = int(match.group(1))

        match = ADDRESS_RE.search(full_text)
        if match:
            info.endereco = match.group(1).strip()

        match = DECLARED_INCOME_RE.search(full_text) or PRESUMED_INCOME_RE.search(full_text)
        if match:
            try:
                info.renda = parse_brl_amount(match.group(1))
            except ValueError:
                logger.debug(f"Unreadable income value: {match.group(1)}")

        return info

    @staticmethod
    def parse_transactions(lines: List[str], nature: str, additional: bool = False):
        """Transactions found in a section plus the number of lines that matched nothing"""
        transactions = []
        misses = 0
        for line in lines:
            match = TRANSACTION_RE.match(line)
            if not match:
                logger.debug(f"Unrecognized {nature} line: {line}")
                misses += 1
                continue

            percent, value, count, document, name = match.groups()
            try:
                percentual = float(percent.replace(",", "."))
                amount = parse_brl_amount(value)
            except ValueError as e:
                logger.debug(f"Unreadable amounts in {nature} line ({e}): {line}")
                misses += 1
                continue

            bank = BANK_RE.search(line)
            transactions.append(RifTransaction(
                natureza=nature,
                percentual=percentual,
                valor=amount,
                quantidade=int(count),
                documento=digits_only(document),
                nome=name.strip(),
                conta=BankAccount(
                    banco=bank.group(1),
                    nome_banco=(bank.group(2) or "").strip(),
                    agencia=bank.group(3),
                    conta=bank.group(4),
                ) if bank else None,
                contraparte_adicional=additional,
            ))
        return transactions, misses

    @staticmethod
    def calculate_summary(credits: List[RifTransaction], debits: List[RifTransaction], period: str) -> RifSummary:
        credit_volume = sum(t.valor for t in credits)
        debit_volume = sum(t.valor for t in debits)
        return RifSummary(
            total_creditos=len(credits),
            total_debitos=len(debits),
            volume_creditos=credit_volume,
            volume_debitos=debit_volume,
            saldo=credit_volume - debit_volume,
            periodo_analise=period,
        )

    @staticmethod
    def identify_alerts(credits: List[RifTransaction], debits: List[RifTransaction]) -> List[RifTextAlert]:
        alerts = []
        transactions = credits + debits

        total_volume = sum(t.valor for t in transactions)
        if total_volume > HIGH_VOLUME_THRESHOLD:
            alerts.append(RifTextAlert(
                tipo="red_flag",
                titulo="Volume financeiro elevado",
                descricao=f"Volume total movimentado: {format_brl(total_volume)}",
                gravidade="alta",
            ))

        counterparties = {t.documento for t in transactions}
        if len(counterparties) > MANY_COUNTERPARTIES_THRESHOLD:
            alerts.append(RifTextAlert(
                tipo="warning",
                titulo="Número elevado de contrapartes",
                descricao=f"Total de {len(counterparties)} contrapartes distintas",
                gravidade="media",
            ))

        small = [t for t in transactions if t.valor < SMALL_TRANSACTION_LIMIT]
        if len(small) > STRUCTURING_COUNT_THRESHOLD:
            alerts.append(RifTextAlert(
                tipo="red_flag",
                titulo="Possível fracionamento",
                descricao=f"{len(small)} transações abaixo de {format_brl(SMALL_TRANSACTION_LIMIT)}",
                gravidade="alta",
            ))

        return alerts

    @staticmethod
    def to_table(report: RifTextReport) -> ParsedTable:
        """Counterparty network around the reported holder: credits flow in, debits flow out"""
        holder = report.informacoes_basicas.cpf or report.cabecalho.titulares or "Titular"
        rows: List[Row] = []
        for transaction in report.creditos:
            rows.append({"origem": transaction.documento or transaction.nome, "destino": holder,
                         "tipo": "credito", "valor": transaction.valor})
        for transaction in report.debitos:
            rows.append({"origem": holder, "destino": transaction.documento or transaction.nome,
                         "tipo": "debito", "valor": transaction.valor})
        return ParsedTable(
            columns=["origem", "destino", "tipo", "valor"],
            rows=rows,
            row_count=len(rows),
            preview=rows[:5],
        )

    @staticmethod
    def generate_report(report: RifTextReport) -> str:
        header, summary = report.cabecalho, report.resumo
        lines = [
            f"# RELATÓRIO DE ANÁLISE RIF - {header.rif}",
            "",
            "## DADOS BÁSICOS",
            f"- **Comunicação:** {header.comunicacao}",
            f"- **ID:** {header.id}",
            f"- **Titular:** {header.titulares}",
            f"- **Comunicante:** {header.comunicante}",
            f"- **Período:** {header.periodo}",
            "",
            "## RESUMO FINANCEIRO",
            f"- **Volume Créditos:** {format_brl(summary.volume_creditos)}",
            f"- **Volume Débitos:** {format_brl(summary.volume_debitos)}",
            f"- **Saldo Líquido:** {format_brl(summary.saldo)}",
            f"- **Total Transações:** {summary.total_creditos + summary.total_debitos}",
            "",
            "## ALERTAS IDENTIFICADOS",
        ]
        lines += [f"- **{a.titulo}:** {a.descricao} ({a.gravidade})" for a in report.alertas]
        lines += ["", "## PRINCIPAIS CONTRAPARTES", "### Créditos"]
        lines += [f"- {t.nome}: {format_brl(t.valor)} ({t.percentual}%)" for t in report.creditos[:5]]
        lines += ["", "### Débitos"]
        lines += [f"- {t.nome}: {format_brl(t.valor)} ({t.percentual}%)" for t in report.debitos[:5]]
        return "\n".join(lines)
