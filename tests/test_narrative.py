from types import SimpleNamespace

import pytest

from linkanalysis.core.config import LLMSettings
from linkanalysis.core.exceptions import NarrativeUnavailableError
from linkanalysis.processors.graph_builder import GraphBuilder
from linkanalysis.processors.narrative import NarrativeAnalyzer


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def graph():
    rows = [
        {"origem": "Ana Lima", "destino": "Bruno Reis"},
        {"origem": "Ana Lima", "destino": "Carla Dias"},
        {"origem": "Bruno Reis", "destino": "Carla Dias"},
    ]
    return GraphBuilder().build_graph(rows, "origem", "destino")


@pytest.fixture
def settings():
    return LLMSettings(api_key="test-key", model="test-model")


def test_payload_summarizes_graph(graph):
    payload = NarrativeAnalyzer.build_payload(graph)

    assert payload["total_nodes"] == 3
    assert payload["total_edges"] == 3
    assert payload["node_types"] == ["entidade"]
    assert payload["top_nodes"][0] == {"id": "Ana Lima", "type": "entidade", "degree": 2}
    assert payload["edges"][0] == {"source": "Ana Lima", "target": "Bruno Reis", "type": "relacionamento", "weight": 1.0}


def test_llm_narrative(graph, settings):
    completions = FakeCompletions(content="  # Relatório\nRede pequena.  ")
    analyzer = NarrativeAnalyzer(settings, client=fake_client(completions))

    result = analyzer.analyze(graph)

    assert result.source == "llm"
    assert result.text == "# Relatório\nRede pequena."
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["messages"][0]["role"] == "system"
    assert '"total_nodes": 3' in call["messages"][1]["content"]


def test_fallback_without_key(graph):
    analyzer = NarrativeAnalyzer(LLMSettings(api_key=None))

    assert analyzer.client is None
    result = analyzer.analyze(graph)

    assert result.source == "fallback"
    assert result.text.startswith("# Análise de Vínculos")
    assert "1. **Ana Lima** (entidade) - 2 conexões" in result.text
    assert "(alta)" in result.text


@pytest.mark.parametrize("completions", [
    FakeCompletions(error=RuntimeError("timeout")),
    FakeCompletions(content="   "),
])
def test_fallback_on_failed_request(graph, settings, completions):
    analyzer = NarrativeAnalyzer(settings, client=fake_client(completions))

    with pytest.raises(NarrativeUnavailableError):
        analyzer.request_narrative(analyzer.build_payload(graph))
    assert analyzer.analyze(graph).source == "fallback"


def test_fallback_for_empty_graph():
    payload = NarrativeAnalyzer.build_payload(GraphBuilder().build_graph([], "a", "b"))

    text = NarrativeAnalyzer.fallback_narrative(payload)

    assert "Nenhuma entidade identificada." in text
    assert "(baixa)" in text
    assert "conectividade moderada" in text
