import pytest

from linkanalysis.core.models import EntityType
from linkanalysis.processors.entity_classifier import EntityClassifier, EntityRule, classify_entity


@pytest.mark.parametrize(
    "value,expected",
    [
        ("12345678901", EntityType.CPF),
        ("123.456.789-01", EntityType.CPF),
        ("12345678000199", EntityType.CNPJ),
        ("12.345.678/0001-99", EntityType.CNPJ),
        ("1133334444", EntityType.TELEFONE),
        ("(11) 3333-4444", EntityType.TELEFONE),
        ("user@example.com", EntityType.EMAIL),
        ("ABC1D23", EntityType.PLACA),
        ("ABC-1234", EntityType.PLACA),
        ("Rua das Flores, 123", EntityType.ENDERECO),
        ("Av. Paulista 1000", EntityType.ENDERECO),
        ("Maria Silva", EntityType.ENTIDADE),
        ("Gustavo Ruas", EntityType.ENTIDADE),
        ("", EntityType.ENTIDADE),
    ],
)
def test_classify(value, expected):
    assert classify_entity(value) == expected


def test_phone_with_leading_zero_is_not_a_phone():
    assert classify_entity("0133334444") == EntityType.ENTIDADE


def test_classification_is_deterministic():
    classifier = EntityClassifier()
    values = ["12345678901", "joao@x.com", "Maria Silva", "Rua A"]

    assert [classifier.classify(v) for v in values] == [classifier.classify(v) for v in values]


def test_first_matching_rule_wins():
    rules = [
        EntityRule("anything", EntityType.EMAIL, lambda v: True),
        EntityRule("never", EntityType.CPF, lambda v: False),
    ]
    classifier = EntityClassifier(rules)

    assert classifier.classify("12345678901") == EntityType.EMAIL
    assert classifier.explain("12345678901") == "anything"


def test_explain_default():
    assert EntityClassifier().explain("Maria Silva") == "default"
    assert EntityClassifier().explain("12345678901") == "cpf"
