"""
Result and visualization types produced by the concept graph.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class NodeKind(str, Enum):
    """Kinds of node in the bipartite note/concept graph."""
    DOCUMENT = "document"
    CONCEPT = "concept"


@dataclass(frozen=True)
class RelatedNote:
    """A note related to a query note, with its normalized relevance."""
    path: str
    relevance: float
    shared_concepts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "relevance": round(self.relevance, 4),
            "shared_concepts": list(self.shared_concepts),
        }


@dataclass(frozen=True)
class NetworkNode:
    id: str
    label: str
    kind: NodeKind
    # Set for concept nodes only
    weight: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        if self.weight is None:
            payload.pop("weight")
        return payload


@dataclass(frozen=True)
class NetworkEdge:
    source: str
    target: str
    value: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ConceptNetwork:
    """Read-only visualization snapshot of the graph."""
    nodes: List[NetworkNode]
    edges: List[NetworkEdge]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
