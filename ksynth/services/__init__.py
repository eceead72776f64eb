"""
Services that connect document stores to the concept index.
"""

from ksynth.services.note_processor import DocumentStore, FileSystemDocumentStore, NoteProcessor

__all__ = ["DocumentStore", "FileSystemDocumentStore", "NoteProcessor"]
