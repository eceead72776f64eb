"""
Concept graph for ksynth.
Bipartite index of notes and the concepts they contain, with
relevance-ranked related-note queries.
"""

import logging
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import networkx as nx
import pandas as pd

from ksynth.graph.models import ConceptNetwork, NetworkEdge, NetworkNode, NodeKind, RelatedNote


logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 10
CONCEPT_ID_PREFIX = "concept-"

NodeKey = Tuple[str, str]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConceptGraph:
    """
    Bipartite note/concept graph.

    Note nodes keep their ordered concept list and last update time.
    Concept nodes keep a weight that always equals the number of notes
    linked to them; a concept node is removed as soon as its last note
    is detached. All access goes through one re-entrant lock, so a
    query never observes a half-applied mutation.
    """

    def __init__(self):
        self.graph = nx.Graph()
        self._lock = threading.RLock()

    @staticmethod
    def _note_key(path: str) -> NodeKey:
        return (NodeKind.DOCUMENT.value, path)

    @staticmethod
    def _concept_key(name: str) -> NodeKey:
        return (NodeKind.CONCEPT.value, name)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_note(self, path: str, concepts: Iterable[str]):
        """
        Index a note, replacing its entire concept set.

        Args:
            path: Note identifier
            concepts: Full desired concept list for the note
        """
        with self._lock:
            self._index_note(path, concepts, _now_ms())

    def update_note_concepts(self, path: str, concepts: Iterable[str]):
        """Overwrite a note's concepts after a manual edit. Same effect as add_note."""
        self.add_note(path, concepts)

    def add_concept_to_note(self, path: str, concept: str) -> bool:
        """
        Append one concept to a note's current concept set.

        Returns:
            True if the concept was added, False if already present
        """
        with self._lock:
            concepts = self.get_note_concepts(path)
            if concept in concepts:
                return False
            concepts.append(concept)
            self.add_note(path, concepts)
            return True

    def remove_note(self, path: str):
        """Remove a note and detach it from its concepts. Unknown paths are ignored."""
        with self._lock:
            note_key = self._note_key(path)
            if note_key not in self.graph:
                return

            for concept in self.graph.nodes[note_key]["concepts"]:
                self._detach(note_key, concept)

            self.graph.remove_node(note_key)

    def rename_note(self, old_path: str, new_path: str) -> bool:
        """
        Move a note's concepts to a new path.

        Returns:
            False if old_path is not indexed
        """
        with self._lock:
            old_key = self._note_key(old_path)
            if old_key not in self.graph:
                return False
            concepts = list(self.graph.nodes[old_key]["concepts"])
            self.remove_note(old_path)
            self.add_note(new_path, concepts)
            return True

    def clear(self):
        with self._lock:
            self.graph.clear()

    def _index_note(self, path: str, concepts: Iterable[str], last_updated: int):
        note_key = self._note_key(path)
        labels = list(dict.fromkeys(concepts))

        if note_key in self.graph:
            new_labels = set(labels)
            for concept in self.graph.nodes[note_key]["concepts"]:
                if concept not in new_labels:
                    self._detach(note_key, concept)
        else:
            self.graph.add_node(note_key, type=NodeKind.DOCUMENT.value, path=path)

        for concept in labels:
            self._attach(note_key, concept)

        self.graph.nodes[note_key]["concepts"] = labels
        self.graph.nodes[note_key]["last_updated"] = int(last_updated)

    def _attach(self, note_key: NodeKey, concept: str):
        concept_key = self._concept_key(concept)
        if concept_key not in self.graph:
            self.graph.add_node(concept_key, type=NodeKind.CONCEPT.value, name=concept, weight=0)
        self.graph.add_edge(concept_key, note_key)
        self.graph.nodes[concept_key]["weight"] = self.graph.degree(concept_key)

    def _detach(self, note_key: NodeKey, concept: str):
        concept_key = self._concept_key(concept)
        if concept_key not in self.graph:
            return
        if self.graph.has_edge(concept_key, note_key):
            self.graph.remove_edge(concept_key, note_key)

        weight = self.graph.degree(concept_key)
        if weight == 0:
            self.graph.remove_node(concept_key)
        else:
            self.graph.nodes[concept_key]["weight"] = weight

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_note(self, path: str) -> bool:
        with self._lock:
            return self._note_key(path) in self.graph

    def note_paths(self) -> List[str]:
        with self._lock:
            return [
                data["path"] for _, data in self.graph.nodes(data=True)
                if data["type"] == NodeKind.DOCUMENT.value
            ]

    def concept_names(self) -> List[str]:
        with self._lock:
            return [
                data["name"] for _, data in self.graph.nodes(data=True)
                if data["type"] == NodeKind.CONCEPT.value
            ]

    def get_note_concepts(self, path: str) -> List[str]:
        """Concepts of a note, or [] if the note is not indexed."""
        with self._lock:
            note_key = self._note_key(path)
            if note_key not in self.graph:
                return []
            return list(self.graph.nodes[note_key]["concepts"])

    def get_note_last_updated(self, path: str) -> Optional[int]:
        with self._lock:
            note_key = self._note_key(path)
            if note_key not in self.graph:
                return None
            return self.graph.nodes[note_key]["last_updated"]

    def get_concept_weight(self, concept: str) -> int:
        with self._lock:
            concept_key = self._concept_key(concept)
            if concept_key not in self.graph:
                return 0
            return self.graph.nodes[concept_key]["weight"]

    def get_concept_notes(self, concept: str) -> List[str]:
        with self._lock:
            concept_key = self._concept_key(concept)
            if concept_key not in self.graph:
                return []
            return [note_key[1] for note_key in self.graph.neighbors(concept_key)]

    def find_related_notes(self, path: str, max_results: int = DEFAULT_MAX_RESULTS) -> List[RelatedNote]:
        """
        Find notes sharing concepts with a note.

        Each shared concept adds its current weight to the candidate's
        raw score. Scores are divided by the highest raw score, so the
        best candidates get relevance 1.0. Results are ordered by
        relevance, then by path.

        Args:
            path: Query note path
            max_results: Maximum number of results

        Returns:
            Related notes, best first. [] for unknown notes.
        """
        with self._lock:
            note_key = self._note_key(path)
            if note_key not in self.graph or max_results <= 0:
                return []

            scores: Dict[str, float] = {}
            shared: Dict[str, List[str]] = {}

            for concept in self.graph.nodes[note_key]["concepts"]:
                concept_key = self._concept_key(concept)
                if concept_key not in self.graph:
                    continue
                weight = self.graph.nodes[concept_key]["weight"]

                for other_key in self.graph.neighbors(concept_key):
                    if other_key == note_key:
                        continue
                    other_path = other_key[1]
                    scores[other_path] = scores.get(other_path, 0) + weight
                    concepts = shared.setdefault(other_path, [])
                    if concept not in concepts:
                        concepts.append(concept)

        max_score = max(scores.values(), default=1)

        related = [
            RelatedNote(path=other_path, relevance=score / max_score, shared_concepts=shared[other_path])
            for other_path, score in scores.items()
        ]
        related.sort(key=lambda note: (-note.relevance, note.path))

        return related[:max_results]

    # ------------------------------------------------------------------
    # Views and export
    # ------------------------------------------------------------------

    def export_network(self) -> ConceptNetwork:
        """
        Build the visualization network.

        Every note becomes a node. Concepts are included only when more
        than one note holds them, with one edge to each of those notes.
        """
        nodes: List[NetworkNode] = []
        edges: List[NetworkEdge] = []

        with self._lock:
            for key, data in self.graph.nodes(data=True):
                if data["type"] != NodeKind.DOCUMENT.value:
                    continue
                path = data["path"]
                nodes.append(NetworkNode(
                    id=path,
                    label=path.split("/")[-1] or path,
                    kind=NodeKind.DOCUMENT,
                ))

            for key, data in self.graph.nodes(data=True):
                if data["type"] != NodeKind.CONCEPT.value or data["weight"] <= 1:
                    continue
                concept_id = f"{CONCEPT_ID_PREFIX}{data['name']}"
                nodes.append(NetworkNode(
                    id=concept_id,
                    label=data["name"],
                    kind=NodeKind.CONCEPT,
                    weight=data["weight"],
                ))
                for note_key in self.graph.neighbors(key):
                    edges.append(NetworkEdge(source=concept_id, target=note_key[1]))

        return ConceptNetwork(nodes=nodes, edges=edges)

    def to_networkx(self) -> nx.Graph:
        """
        The export_network() view as a networkx graph.

        Nodes are keyed "<kind>:<id>" so a note path can never collide
        with a concept id; the unprefixed id is kept in "node_id".
        """
        network = self.export_network()
        view = nx.Graph()

        for node in network.nodes:
            attrs = {"type": node.kind.value, "node_id": node.id, "label": node.label}
            if node.weight is not None:
                attrs["weight"] = node.weight
            view.add_node(self._view_key(node.kind, node.id), **attrs)

        for edge in network.edges:
            view.add_edge(
                self._view_key(NodeKind.CONCEPT, edge.source),
                self._view_key(NodeKind.DOCUMENT, edge.target),
                value=edge.value,
            )

        return view

    @staticmethod
    def _view_key(kind: NodeKind, node_id: str) -> str:
        return f"{kind.value}:{node_id}"

    def export_to_graphml(self, output_file: str):
        """
        Export the visualization network to GraphML.

        Args:
            output_file: Path to output GraphML file
        """
        logger.info(f"Exporting concept network to GraphML: {output_file}")
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        nx.write_graphml(self.to_networkx(), output_file)
        logger.info(f"GraphML file saved: {output_file}")

    def to_dataframes(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Tabulate the index.

        Returns:
            Tuple of (notes_df, concepts_df). notes_df has one row per
            (path, concept); concepts_df has one row per concept with its
            weight and comma-separated note paths.
        """
        note_rows = []
        concept_rows = []

        with self._lock:
            for key, data in self.graph.nodes(data=True):
                if data["type"] == NodeKind.DOCUMENT.value:
                    for concept in data["concepts"]:
                        note_rows.append({
                            "path": data["path"],
                            "concept": concept,
                            "last_updated": data["last_updated"],
                        })
                else:
                    concept_rows.append({
                        "name": data["name"],
                        "weight": data["weight"],
                        "note_paths": ",".join(note_key[1] for note_key in self.graph.neighbors(key)),
                    })

        notes_df = pd.DataFrame(note_rows, columns=["path", "concept", "last_updated"])
        concepts_df = pd.DataFrame(concept_rows, columns=["name", "weight", "note_paths"])
        if not concepts_df.empty:
            concepts_df = concepts_df.sort_values(["weight", "name"], ascending=[False, True]).reset_index(drop=True)

        return notes_df, concepts_df

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Serialize notes and concepts in snapshot layout."""
        notes: Dict[str, Dict[str, Any]] = {}
        concepts: Dict[str, Dict[str, Any]] = {}

        with self._lock:
            for key, data in self.graph.nodes(data=True):
                if data["type"] == NodeKind.DOCUMENT.value:
                    notes[data["path"]] = {
                        "concepts": list(data["concepts"]),
                        "lastUpdated": data["last_updated"],
                    }
                else:
                    concepts[data["name"]] = {
                        "documentIds": [note_key[1] for note_key in self.graph.neighbors(key)],
                        "weight": data["weight"],
                    }

        return {"notes": notes, "concepts": concepts}

    @classmethod
    def from_dict(cls, notes: Mapping[str, Mapping[str, Any]]) -> "ConceptGraph":
        """
        Rebuild a graph from the notes section of a snapshot.

        Concept nodes are derived from the notes, so stored weights are
        never trusted.
        """
        graph = cls()
        for path, note in notes.items():
            concepts = note.get("concepts", [])
            if not isinstance(concepts, list):
                raise TypeError(f"Concepts for note {path!r} must be a list")
            graph._index_note(str(path), [str(concept) for concept in concepts], int(note.get("lastUpdated", 0)))
        return graph

    def load_dict(self, notes: Mapping[str, Mapping[str, Any]]):
        """Replace this graph's contents with a snapshot's notes section."""
        rebuilt = ConceptGraph.from_dict(notes)
        with self._lock:
            self.graph = rebuilt.graph

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statistics(self, top_n: int = 10) -> Dict[str, Any]:
        """Summary statistics of the index and its network view."""
        with self._lock:
            weights = Counter({
                data["name"]: data["weight"]
                for _, data in self.graph.nodes(data=True)
                if data["type"] == NodeKind.CONCEPT.value
            })
            note_count = len(self.graph) - len(weights)
            edge_count = self.graph.number_of_edges()

        view = self.to_networkx()
        components = list(nx.connected_components(view)) if view.number_of_nodes() else []

        return {
            "total_notes": note_count,
            "total_concepts": len(weights),
            "shared_concepts": sum(1 for weight in weights.values() if weight > 1),
            "note_concept_links": edge_count,
            "top_concepts": weights.most_common(top_n),
            "network_components": len(components),
            "largest_component_size": max((len(component) for component in components), default=0),
        }

    def log_statistics(self):
        stats = self.statistics()

        logger.info("=" * 80)
        logger.info("Concept Graph Statistics")
        logger.info("=" * 80)
        logger.info(f"Notes: {stats['total_notes']}")
        logger.info(f"Concepts: {stats['total_concepts']} ({stats['shared_concepts']} shared)")
        logger.info(f"Note-concept links: {stats['note_concept_links']}")
        logger.info(f"Network components: {stats['network_components']}, largest: {stats['largest_component_size']} nodes")

        if stats["top_concepts"]:
            logger.info("\nTop concepts by weight:")
            for name, weight in stats["top_concepts"]:
                logger.info(f"  {name}: {weight}")

        logger.info("=" * 80)
