from datetime import datetime
from decimal import Decimal

import pytest

from linkanalysis.core.exceptions import ReportParseError, UnsupportedFormatError
from linkanalysis.core.report_models import TransactionKind, TransactionRow
from linkanalysis.processors.transaction_parser import (
    TransactionParser, normalize_amount, normalize_date, normalize_type,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("15/03/2023", datetime(2023, 3, 15)),
        ("2023-03-15", datetime(2023, 3, 15)),
        ("15/03/2023 10:30:00", datetime(2023, 3, 15, 10, 30)),
        ("15-03-2023", datetime(2023, 3, 15)),
        ("15 mar 2023", datetime(2023, 3, 15)),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


def test_normalize_date_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_date("ontem")


@pytest.mark.parametrize(
    "raw,expected",
    [("R$ 1.234,56", Decimal("1234.56")), ("-500,00", Decimal("500.00")), (12.5, Decimal("12.5"))],
)
def test_normalize_amount(raw, expected):
    assert normalize_amount(raw) == expected


def test_normalize_type():
    assert normalize_type("Crédito") == TransactionKind.CREDIT
    assert normalize_type("PAGAMENTO") == TransactionKind.DEBIT
    with pytest.raises(ValueError):
        normalize_type("transferencia")


def test_txt_lines(make_upload):
    text = (
        "15/03/2023|credito|R$ 1.000,00|Ana Souza|123.456.789-01|Pix recebido|PIX\n"
        "16/03/2023|debito|250,00|\n"
        "linha invalida\n"
        "99/99/2023|credito|10,00|Bia\n"
    )
    rows = TransactionParser().parse(make_upload("extrato.txt", text))

    assert len(rows) == 2
    assert rows[0].counterparty_document == "12345678901"
    assert rows[0].method == "PIX"
    assert rows[1].type == TransactionKind.DEBIT
    assert rows[1].counterparty == "Desconhecido"


def test_csv_columns_found_by_name(make_upload):
    text = "Data;Tipo;Valor;Contraparte;Documento\n15/03/2023;Entrada;100,50;Ana;111.222.333-44\n"
    rows = TransactionParser().parse(make_upload("extrato.csv", text))

    assert rows == [TransactionRow(
        date=datetime(2023, 3, 15),
        amount=Decimal("100.50"),
        type=TransactionKind.CREDIT,
        counterparty="Ana",
        counterparty_document="11122233344",
    )]


def test_csv_without_required_columns(make_upload):
    assert TransactionParser().parse(make_upload("extrato.csv", "nome,cidade\nAna,Recife\nBia,Natal\n")) == []


def test_excel_requires_columns(make_upload, excel_bytes):
    content = excel_bytes([["nome", "cidade"], ["Ana", "Recife"]])

    with pytest.raises(ReportParseError):
        TransactionParser().parse(make_upload("extrato.xlsx", content))


def test_excel_rows(make_upload, excel_bytes):
    content = excel_bytes([["data", "tipo", "valor", "beneficiario"], ["15/03/2023", "debito", 75.5, "Loja"]])
    rows = TransactionParser().parse(make_upload("extrato.xlsx", content))

    assert rows[0].amount == Decimal("75.5")
    assert rows[0].counterparty == "Loja"


def test_unsupported_extension(make_upload):
    with pytest.raises(UnsupportedFormatError):
        TransactionParser().parse(make_upload("extrato.pdf", b"%PDF"))


def test_validate_reports_future_and_zero_amounts():
    now = datetime(2024, 1, 1)
    rows = [
        TransactionRow(date=datetime(2025, 1, 1), amount=Decimal("10"), type=TransactionKind.CREDIT),
        TransactionRow(date=datetime(2023, 1, 1), amount=Decimal("0"), type=TransactionKind.DEBIT),
    ]
    result = TransactionParser.validate(rows, now=now)

    assert not result.valid
    assert result.errors == [
        "1 transactions with future dates detected",
        "1 transactions with zero amount detected",
    ]


def test_validate_empty():
    result = TransactionParser.validate([])

    assert result.errors == ["No valid transactions found"]
