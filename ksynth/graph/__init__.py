"""
Graph module for ksynth.
Indexes notes by concept and answers related-note queries.
"""

from ksynth.graph.concept_graph import ConceptGraph
from ksynth.graph.models import ConceptNetwork, NetworkEdge, NetworkNode, NodeKind, RelatedNote

__all__ = ["ConceptGraph", "ConceptNetwork", "NetworkEdge", "NetworkNode", "NodeKind", "RelatedNote"]
