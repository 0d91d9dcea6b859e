"""
Parser for COAF RIF spreadsheets (the "Informações Adicionais" Excel export)
"""

import io
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from .base_processor import BaseProcessor
from .coercion import digits_only, is_empty, parse_brl_amount, to_text
from .report_formatting import format_brl, format_date, format_timestamp
from linkanalysis.core.exceptions import ReportParseError
from linkanalysis.core.models import ParsedTable, ProcessingConfig, Row, UploadedFile
from linkanalysis.core.report_models import (
    AlertLevel, HolderSummary, IndexerSummary, RifAlert, RifEntity,
    RifSpreadsheetReport, RifStatistics,
)

# Header variants per field, matched by substring against the uppercased header
COLUMN_PATTERNS = {
    "ordem": ["ORDEM"],
    "rif": ["RIF"],
    "indexador": ["INDEXADOR"],
    "remetente_doc": ["REMETENTE/BENEFICIARIO CPF/CNPJ", "REMETENTE/BENEFICIÁRIO CPF/CNPJ"],
    "remetente_nome": ["REMETENTE/BENEFICIARIO NOME", "REMETENTE/BENEFICIÁRIO NOME"],
    "tipo": ["REMETENTE OU BENEFICIARIO?", "REMETENTE OU BENEFICIÁRIO?", "TIPO"],
    "valor": ["VALOR"],
    "titular_doc": ["TITULAR CPF/CNPJ"],
    "titular_nome": ["TITULAR NOME"],
    "responsavel_doc": ["RESPONSÁVEL CPF/CNPJ", "RESPONSAVEL CPF/CNPJ"],
    "responsavel_nome": ["RESPONSÁVEL NOME", "RESPONSAVEL NOME"],
    "periodo": ["DATA/PERÍODO", "DATA/PERIODO", "PERÍODO", "PERIODO"],
    "observacoes": ["OBSERVAÇÕES", "OBSERVACOES", "OBS"],
}

DOCUMENT_FIELDS = {"remetente_doc", "titular_doc", "responsavel_doc"}
MANUAL_FILL = "PREENCHER MANUALMENTE"
NO_VALID_DOCUMENT = "NÃO FOI DETECTADO NENHUM CPF/CNPJ VÁLIDO"
_DATE_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})")


class RifSpreadsheetParser(BaseProcessor):
    """
    Reads RIF spreadsheets into entities, per-holder aggregates and alerts:
    1. Map fuzzy header names to the known fields
    2. Turn each row into a RifEntity, skipping rows without a sender
    3. Aggregate inflow/outflow per holder and totals per indexer
    4. Raise alerts for placeholders, self-transfers, missing documents and high values
    """

    def __init__(self, config: Optional[ProcessingConfig] = None):
        super().__init__(config or ProcessingConfig())

    def process(self, file: UploadedFile) -> RifSpreadsheetReport:
        return self.parse(file)

    def validate_input(self, file: UploadedFile) -> bool:
        return file.extension in ("xlsx", "xls")

    def parse(self, file: UploadedFile) -> RifSpreadsheetReport:
        logger.info(f"Parsing RIF spreadsheet {file.name}")
        try:
            frame = pd.read_excel(io.BytesIO(file.content), sheet_name=0, header=None, dtype=object)
        except Exception as e:
            logger.error(f"Failed to read RIF spreadsheet {file.name}: {e}")
            raise ReportParseError(f"Failed to read RIF spreadsheet: {e}") from e

        return self.parse_records(frame.dropna(how="all").values.tolist())

    def parse_records(self, records: List[List[Any]]) -> RifSpreadsheetReport:
        """Parse a sheet given as a list of rows, header first"""
        if len(records) < 2:
            raise ReportParseError("Excel file is empty or has no data rows")

        headers = [to_text(h).strip().upper() if not is_empty(h) else "" for h in records[0]]
        column_map = self.map_columns(headers)
        logger.info(f"RIF column mapping: {column_map}")

        entities: List[RifEntity] = []
        rif_number = ""
        skipped = 0

        for line_number, record in enumerate(records[1:], start=2):
            try:
                entity = self.parse_row(record, column_map)
            except Exception as e:
                logger.warning(f"Skipping spreadsheet line {line_number}: {e}")
                skipped += 1
                continue

            if entity is None:
                skipped += 1
                continue
            entities.append(entity)
            if entity.rif and not rif_number:
                rif_number = entity.rif

        logger.info(f"Extracted {len(entities)} RIF entities ({skipped} rows skipped)")

        return RifSpreadsheetReport(
            numero_rif=rif_number,
            entidades=entities,
            estatisticas=self.calculate_statistics(entities),
            alertas=self.detect_alerts(entities),
            skipped_rows=skipped,
        )

    @staticmethod
    def map_columns(headers: List[str]) -> Dict[str, int]:
        """Field name -> column index; the first matching field claims a header"""
        column_map: Dict[str, int] = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            for field_name, patterns in COLUMN_PATTERNS.items():
                if any(pattern in header for pattern in patterns):
                    column_map[field_name] = index
                    break
        return column_map

    def parse_row(self, record: List[Any], column_map: Dict[str, int]) -> Optional[RifEntity]:
        def value_of(field_name: str) -> Any:
            index = column_map.get(field_name)
            if index is None or index >= len(record) or is_empty(record[index]):
                return ""
            return record[index]

        values = {field_name: to_text(value_of(field_name)).strip() for field_name in COLUMN_PATTERNS}
        if not values["remetente_doc"] and not values["remetente_nome"]:
            return None

        for field_name in DOCUMENT_FIELDS:
            values[field_name] = digits_only(values[field_name])
        values["valor"] = self.parse_value(value_of("valor"))

        return RifEntity(**values)

    @staticmethod
    def parse_value(raw: Any) -> float:
        """Spreadsheet amount; manual-fill markers and garbage count as zero"""
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw)
        text = to_text(raw).strip()
        if not text or text.upper() == MANUAL_FILL:
            return 0.0
        try:
            return parse_brl_amount(text)
        except ValueError:
            return 0.0

    def calculate_statistics(self, entities: List[RifEntity]) -> RifStatistics:
        holders: Dict[str, HolderSummary] = {}
        indexers: Dict[str, IndexerSummary] = {}
        total_value = 0.0
        period_start: Optional[datetime] = None
        period_end: Optional[datetime] = None

        for entity in entities:
            holder_key = entity.titular_doc or entity.titular_nome
            if holder_key:
                holder = holders.setdefault(
                    holder_key,
                    HolderSummary(key=holder_key, document=entity.titular_doc, name=entity.titular_nome),
                )
                holder.transacoes += 1
                role = entity.tipo.upper()
                if "BENEFICIARIO" in role or "BENEFICIÁRIO" in role:
                    holder.total_entradas += entity.valor
                elif "REMETENTE" in role:
                    holder.total_saidas += entity.valor

            if entity.indexador:
                indexer = indexers.setdefault(entity.indexador, IndexerSummary(indexador=entity.indexador))
                indexer.count += 1
                indexer.valor_total += entity.valor

            if entity.valor > 0:
                total_value += entity.valor

            if entity.periodo:
                start, end = self.parse_period(entity.periodo)
                if start and (period_start is None or start < period_start):
                    period_start = start
                if end and (period_end is None or end > period_end):
                    period_end = end

        return RifStatistics(
            total_entidades=len(entities),
            total_titulares=len(holders),
            valor_total=total_value,
            periodo_inicio=period_start,
            periodo_fim=period_end,
            media_entidades_por_titular=len(entities) / len(holders) if holders else 0.0,
            titulares=holders,
            indexadores=indexers,
        )

    @staticmethod
    def parse_period(period: str):
        """Start and end dates of a 'dd/mm/yyyy a dd/mm/yyyy' period"""
        def parse_date(text: str) -> Optional[datetime]:
            match = _DATE_RE.search(text)
            if not match:
                return None
            day, month, year = (int(part) for part in match.groups())
            try:
                return datetime(year, month, day)
            except ValueError:
                return None

        parts = [part.strip() for part in period.split(" a ")]
        start = parse_date(parts[0])
        end = parse_date(parts[1]) if len(parts) > 1 and parts[1] else start
        return start, end

    def detect_alerts(self, entities: List[RifEntity]) -> List[RifAlert]:
        alerts: List[RifAlert] = []

        manual = [i for i, e in enumerate(entities) if e.valor == 0 and "PREENCHER" in e.tipo.upper()]
        if manual:
            alerts.append(RifAlert(
                level=AlertLevel.WARNING,
                message=f"{len(manual)} entidade(s) precisam ter valores preenchidos manualmente",
                rows=manual,
            ))

        same_owner = [i for i, e in enumerate(entities) if "mesma titularidade" in e.remetente_nome.lower()]
        if same_owner:
            alerts.append(RifAlert(
                level=AlertLevel.INFO,
                message=f"{len(same_owner)} transação(ões) de mesma titularidade detectadas",
                rows=same_owner,
            ))

        no_document = [i for i, e in enumerate(entities) if NO_VALID_DOCUMENT in e.observacoes.upper()]
        if no_document:
            alerts.append(RifAlert(
                level=AlertLevel.DANGER,
                message=f"{len(no_document)} entidade(s) sem CPF/CNPJ válido",
                rows=no_document,
            ))

        threshold = self.config.high_value_threshold
        high_value = [i for i, e in enumerate(entities) if e.valor > threshold]
        if high_value:
            alerts.append(RifAlert(
                level=AlertLevel.WARNING,
                message=f"{len(high_value)} transação(ões) acima de {format_brl(threshold)}",
                rows=high_value,
            ))

        return alerts

    @staticmethod
    def to_table(report: RifSpreadsheetReport) -> ParsedTable:
        """
        Holder network as a table for the regular graph builder.

        A sender points at the holder, the holder points at a beneficiary.
        """
        rows: List[Row] = []
        for entity in report.entidades:
            holder = entity.titular_doc or entity.titular_nome
            counterpart = entity.remetente_doc or entity.remetente_nome
            role = entity.tipo.upper()
            if "REMETENTE" in role:
                source, target, relation = counterpart, holder, "remetente"
            elif "BENEFICIARIO" in role or "BENEFICIÁRIO" in role:
                source, target, relation = holder, counterpart, "beneficiario"
            else:
                source, target, relation = counterpart, holder, entity.tipo.lower() or "relacionamento"
            rows.append({"origem": source, "destino": target, "tipo": relation, "valor": entity.valor})

        return ParsedTable(
            columns=["origem", "destino", "tipo", "valor"],
            rows=rows,
            row_count=len(rows),
            preview=rows[:5],
        )

    @staticmethod
    def generate_report(report: RifSpreadsheetReport, generated_at: Optional[datetime] = None) -> str:
        """Markdown report with period, totals, top holders, indexers and alerts"""
        stats = report.estatisticas
        lines = [
            f"# RELATÓRIO DETALHADO - RIF {report.numero_rif}",
            "",
            "## PERÍODO DE ANÁLISE",
            f"- **Início:** {format_date(stats.periodo_inicio)}",
            f"- **Fim:** {format_date(stats.periodo_fim)}",
            "",
            "## ESTATÍSTICAS GERAIS",
            f"- **Total de Entidades:** {stats.total_entidades}",
            f"- **Total de Titulares:** {stats.total_titulares}",
            f"- **Total de Indexadores:** {len(stats.indexadores)}",
            f"- **Valor Total Movimentado:** {format_brl(stats.valor_total)}",
            f"- **Média de Transações por Titular:** {stats.media_entidades_por_titular:.2f}",
            "",
            "## ANÁLISE POR TITULAR",
        ]

        top_holders = sorted(stats.titulares.values(), key=lambda h: h.total, reverse=True)[:10]
        for holder in top_holders:
            lines += [
                "",
                f"### {holder.name} ({holder.document or 'Sem documento'})",
                f"- **Total Entradas:** {format_brl(holder.total_entradas)}",
                f"- **Total Saídas:** {format_brl(holder.total_saidas)}",
                f"- **Saldo:** {format_brl(holder.total_entradas - holder.total_saidas)}",
            ]

        lines += ["", "## ANÁLISE POR INDEXADOR"]
        for indexer in sorted(stats.indexadores.values(), key=lambda i: i.count, reverse=True):
            lines += [
                "",
                f"### Indexador {indexer.indexador}",
                f"- **Número de Entidades:** {indexer.count}",
                f"- **Valor Total:** {format_brl(indexer.valor_total)}",
            ]

        if report.alertas:
            lines += ["", "## ALERTAS E OBSERVAÇÕES"]
            icons = {AlertLevel.DANGER: "🔴", AlertLevel.WARNING: "🟡", AlertLevel.INFO: "ℹ️"}
            for alert in report.alertas:
                lines += ["", f"{icons[alert.level]} **{alert.message}**"]

        timestamp = format_timestamp(generated_at or datetime.now())
        lines += ["", "---", f"*Relatório gerado automaticamente em {timestamp}*"]
        return "\n".join(lines)
