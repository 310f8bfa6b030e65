from __future__ import annotations

from typing import Any, Dict, Protocol

from langgraph.graph import StateGraph, START, END

from storecheck.graph.routers import route_after_validation


class AnalysisNodes(Protocol):
    async def collect_files_node(self, state: Dict[str, Any]) -> Dict[str, Any]: ...

    async def evaluate_rules_node(self, state: Dict[str, Any]) -> Dict[str, Any]: ...

    async def validate_content_node(self, state: Dict[str, Any]) -> Dict[str, Any]: ...

    async def augment_node(self, state: Dict[str, Any]) -> Dict[str, Any]: ...


def build_graph(nodes: AnalysisNodes) -> "StateGraph":
    """
    Analysis graph:
    - START -> collect_files -> evaluate_rules -> validate_content
    - validate_content -> (augment if there are issues, else END)
    - augment -> END
    """
    g = StateGraph(dict)  # state is a Dict[str, Any]

    g.add_node("collect_files", nodes.collect_files_node)
    g.add_node("evaluate_rules", nodes.evaluate_rules_node)
    g.add_node("validate_content", nodes.validate_content_node)
    g.add_node("augment", nodes.augment_node)

    g.add_edge(START, "collect_files")
    g.add_edge("collect_files", "evaluate_rules")
    g.add_edge("evaluate_rules", "validate_content")

    g.add_conditional_edges(
        "validate_content",
        route_after_validation,
        {
            "augment": "augment",
            "end": END,
        },
    )

    g.add_edge("augment", END)

    return g
