"""
ksynth: knowledge synthesis for note collections

Extracts concept labels from free-text notes and maintains a bipartite
note/concept index answering "which notes relate to this one, and why".
"""

__version__ = "0.1.0"

from ksynth.extraction import ConceptExtractor, TextProcessor
from ksynth.graph import ConceptGraph, ConceptNetwork, NodeKind, RelatedNote
from ksynth.storage import DataManager
from ksynth.services import FileSystemDocumentStore, NoteProcessor

__all__ = [
    "ConceptExtractor",
    "TextProcessor",
    "ConceptGraph",
    "ConceptNetwork",
    "NodeKind",
    "RelatedNote",
    "DataManager",
    "FileSystemDocumentStore",
    "NoteProcessor",
]
