"""
Investigative narrative for a link graph, via an OpenAI-compatible chat endpoint with a local fallback
"""

import json
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import OpenAI

from linkanalysis.core.config import LLMSettings
from linkanalysis.core.exceptions import NarrativeUnavailableError
from linkanalysis.core.models import LinkGraph, NarrativeResult

TOP_NODES = 10
EDGE_SAMPLE = 20
FALLBACK_TOP_ENTITIES = 5
DENSITY_THRESHOLD = 0.1
DEGREE_THRESHOLD = 5

SYSTEM_PROMPT = (
    "Você é um analista especializado em investigação criminal e análise de vínculos. "
    "Analise a rede de relacionamentos fornecida e produza um relatório investigativo "
    "objetivo em português, em formato markdown."
)

USER_PROMPT = """Analise a seguinte rede de vínculos e gere um relatório investigativo contendo:

1. Resumo executivo da rede
2. Entidades centrais e seu possível papel
3. Padrões de relacionamento relevantes
4. Indícios de atividade suspeita
5. Recomendações de diligências

Dados da rede (JSON):
{payload}
"""


class NarrativeAnalyzer:
    """
    Produces a markdown narrative for a graph:
    1. Summarize the graph into a compact JSON payload
    2. Ask the language model for an investigative report
    3. Fall back to a rule-based report when no key is configured or the call fails
    """

    def __init__(self, settings: Optional[LLMSettings] = None, client: Optional[Any] = None):
        self.settings = settings or LLMSettings.load()
        self.client = client
        if self.client is None and self.settings.configured:
            self.client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
            )

    @staticmethod
    def build_payload(graph: LinkGraph) -> Dict[str, Any]:
        metadata = graph.metadata
        top = sorted(graph.nodes, key=lambda n: n.degree, reverse=True)[:TOP_NODES]
        return {
            "total_nodes": metadata.total_nodes,
            "total_edges": metadata.total_edges,
            "node_types": metadata.node_types,
            "edge_types": metadata.edge_types,
            "density": metadata.density,
            "average_degree": metadata.average_degree,
            "top_nodes": [{"id": n.id, "type": n.type.value, "degree": n.degree} for n in top],
            "edges": [
                {"source": e.source, "target": e.target, "type": e.type, "weight": e.weight}
                for e in graph.edges[:EDGE_SAMPLE]
            ],
        }

    def analyze(self, graph: LinkGraph) -> NarrativeResult:
        payload = self.build_payload(graph)
        try:
            text = self.request_narrative(payload)
            return NarrativeResult(text=text, source="llm", payload=payload)
        except NarrativeUnavailableError as e:
            logger.warning(f"Using fallback narrative: {e}")
            return NarrativeResult(text=self.fallback_narrative(payload), source="fallback", payload=payload)

    def request_narrative(self, payload: Dict[str, Any]) -> str:
        if self.client is None:
            raise NarrativeUnavailableError("No language-model API key configured")

        try:
            response = self.client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": USER_PROMPT.format(
                        payload=json.dumps(payload, ensure_ascii=False, indent=2))},
                ],
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"Language-model request failed: {e}")
            raise NarrativeUnavailableError(f"Language-model request failed: {e}") from e

        if not content or not content.strip():
            raise NarrativeUnavailableError("Language model returned an empty response")
        logger.info(f"Received narrative with {len(content)} characters")
        return content.strip()

    @staticmethod
    def fallback_narrative(payload: Dict[str, Any]) -> str:
        density = payload["density"]
        average_degree = payload["average_degree"]
        top: List[Dict[str, Any]] = payload["top_nodes"][:FALLBACK_TOP_ENTITIES]

        density_label = "alta" if density > DENSITY_THRESHOLD else "baixa"
        connectivity_label = "forte" if average_degree > DEGREE_THRESHOLD else "moderada"

        lines = [
            "# Análise de Vínculos",
            "",
            "## Resumo da Rede",
            f"- **Entidades:** {payload['total_nodes']}",
            f"- **Relacionamentos:** {payload['total_edges']}",
            f"- **Tipos de entidade:** {', '.join(payload['node_types']) or 'nenhum'}",
            f"- **Densidade:** {density:.3f} ({density_label})",
            f"- **Grau médio:** {average_degree:.2f} (conectividade {connectivity_label})",
            "",
            "## Entidades Centrais",
        ]
        if top:
            lines += [f"{i}. **{n['id']}** ({n['type']}) - {n['degree']} conexões" for i, n in enumerate(top, 1)]
        else:
            lines.append("Nenhuma entidade identificada.")

        lines += [
            "",
            "## Recomendações",
            "- Aprofundar a investigação sobre as entidades centrais listadas acima.",
            "- Verificar a titularidade dos documentos (CPF/CNPJ) identificados.",
            "- Cruzar telefones e e-mails com outras bases disponíveis.",
        ]
        if density_label == "alta":
            lines.append("- A rede é densa: avaliar a existência de grupo organizado.")
        if connectivity_label == "forte":
            lines.append("- Alta conectividade: priorizar a análise dos intermediários.")
        lines += ["", "_Relatório gerado localmente sem apoio de modelo de linguagem._"]
        return "\n".join(lines)
