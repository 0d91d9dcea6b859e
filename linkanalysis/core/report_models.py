"""
Data models for financial-intelligence (RIF) reports and transaction rows
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AlertLevel(str, Enum):
    """Severity of a spreadsheet alert"""
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


class RifAlert(BaseModel):
    """Qualitative alert raised while reading a RIF spreadsheet"""
    level: AlertLevel
    message: str
    rows: List[int] = Field(default_factory=list, description="Entity positions the alert refers to")


class RifEntity(BaseModel):
    """One row of a RIF spreadsheet"""
    ordem: str = ""
    rif: str = ""
    indexador: str = ""
    remetente_doc: str = ""
    remetente_nome: str = ""
    tipo: str = ""
    valor: float = 0.0
    titular_doc: str = ""
    titular_nome: str = ""
    responsavel_doc: str = ""
    responsavel_nome: str = ""
    periodo: str = ""
    observacoes: str = ""


class HolderSummary(BaseModel):
    """Inflow and outflow aggregated per account holder"""
    key: str
    document: str = ""
    name: str = ""
    total_entradas: float = 0.0
    total_saidas: float = 0.0
    transacoes: int = 0

    @property
    def total(self) -> float:
        return self.total_entradas + self.total_saidas


class IndexerSummary(BaseModel):
    """Rows grouped by RIF indexer"""
    indexador: str
    count: int = 0
    valor_total: float = 0.0


class RifStatistics(BaseModel):
    """Aggregates over a RIF spreadsheet"""
    total_entidades: int = 0
    total_titulares: int = 0
    valor_total: float = 0.0
    periodo_inicio: Optional[datetime] = None
    periodo_fim: Optional[datetime] = None
    media_entidades_por_titular: float = 0.0
    titulares: Dict[str, HolderSummary] = Field(default_factory=dict)
    indexadores: Dict[str, IndexerSummary] = Field(default_factory=dict)


class RifSpreadsheetReport(BaseModel):
    """Structured content of a RIF spreadsheet"""
    numero_rif: str = ""
    entidades: List[RifEntity] = Field(default_factory=list)
    estatisticas: RifStatistics = Field(default_factory=RifStatistics)
    alertas: List[RifAlert] = Field(default_factory=list)
    skipped_rows: int = 0


class RifHeader(BaseModel):
    """Header block of a free-text RIF"""
    comunicacao: str = ""
    id: str = ""
    rif: str = ""
    indexador: str = ""
    titulares: str = ""
    comunicante: str = ""
    segmento: str = ""
    periodo: str = ""


class InvolvedParty(BaseModel):
    """Entry of the ENVOLVIDOS section"""
    documento: str
    nome: str
    tipo_documento: str
    papel: str


class BasicInformation(BaseModel):
    """Registration details of the reported person"""
    nome: str = ""
    cpf: str = ""
    idade: Optional[int] = None
    endereco: str = ""
    renda: Optional[float] = None


class BankAccount(BaseModel):
    banco: str
    nome_banco: str = ""
    agencia: str = ""
    conta: str = ""


class RifTransaction(BaseModel):
    """Credit or debit line of a free-text RIF"""
    natureza: str = Field(description="'credito' or 'debito'")
    percentual: float = 0.0
    valor: float = 0.0
    quantidade: int = 0
    documento: str = ""
    nome: str = ""
    conta: Optional[BankAccount] = None
    contraparte_adicional: bool = False


class RifTextAlert(BaseModel):
    """Rule-based alert raised over a free-text RIF"""
    tipo: str = Field(description="'red_flag' or 'warning'")
    titulo: str
    descricao: str
    gravidade: str = Field(description="'alta', 'media' or 'baixa'")


class RifSummary(BaseModel):
    total_creditos: int = 0
    total_debitos: int = 0
    volume_creditos: float = 0.0
    volume_debitos: float = 0.0
    saldo: float = 0.0
    periodo_analise: str = ""


class RifTextReport(BaseModel):
    """Structured content of a free-text RIF"""
    cabecalho: RifHeader = Field(default_factory=RifHeader)
    envolvidos: List[InvolvedParty] = Field(default_factory=list)
    informacoes_basicas: BasicInformation = Field(default_factory=BasicInformation)
    creditos: List[RifTransaction] = Field(default_factory=list)
    debitos: List[RifTransaction] = Field(default_factory=list)
    resumo: RifSummary = Field(default_factory=RifSummary)
    alertas: List[RifTextAlert] = Field(default_factory=list)
    skipped_lines: int = 0


class TransactionKind(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionRow(BaseModel):
    """A transaction normalized from any RIF export format"""
    date: datetime
    amount: Decimal
    type: TransactionKind
    counterparty: str = "Desconhecido"
    counterparty_document: Optional[str] = None
    description: Optional[str] = None
    method: Optional[str] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
