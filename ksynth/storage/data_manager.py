"""
Snapshot persistence for ksynth.
Saves and restores the concept graph and user feedback as versioned JSON.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ksynth.extraction.concept_extractor import ConceptExtractor
from ksynth.graph.concept_graph import ConceptGraph


logger = logging.getLogger(__name__)

CURRENT_VERSION = 1


def empty_snapshot() -> Dict[str, Any]:
    return {
        "version": CURRENT_VERSION,
        "notes": {},
        "concepts": {},
        "userFeedback": {},
    }


def migrate_snapshot(old_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring a snapshot from an older version up to CURRENT_VERSION.

    Missing sections get their defaults. Concept entries written with
    the legacy "notePaths" key are moved to "documentIds".
    """
    concepts = {}
    for name, concept in (old_data.get("concepts") or {}).items():
        document_ids = concept.get("documentIds", concept.get("notePaths", []))
        concepts[name] = {
            "documentIds": list(document_ids),
            "weight": concept.get("weight", len(document_ids)),
        }

    return {
        "version": CURRENT_VERSION,
        "notes": old_data.get("notes") or {},
        "concepts": concepts,
        "userFeedback": old_data.get("userFeedback") or {},
    }


class DataManager:
    """
    JSON snapshot store.
    A missing or unreadable snapshot always loads as an empty index.
    """

    def __init__(self, data_file: str):
        """
        Initialize data manager.

        Args:
            data_file: Path of the JSON snapshot file
        """
        self.data_file = Path(data_file)
        self.data: Dict[str, Any] = empty_snapshot()

    def load(self) -> Dict[str, Any]:
        """
        Load the snapshot from disk.

        Returns:
            The snapshot, migrated to the current version
        """
        if not self.data_file.exists():
            logger.info(f"No snapshot at {self.data_file}, starting with an empty index")
            self.data = empty_snapshot()
            return self.data

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                saved = json.load(f)

            if not saved:
                self.data = empty_snapshot()
            elif not isinstance(saved, dict):
                raise ValueError(f"Snapshot root must be an object, got {type(saved).__name__}")
            elif saved.get("version") != CURRENT_VERSION:
                logger.info(f"Migrating snapshot from version {saved.get('version')} to {CURRENT_VERSION}")
                self.data = migrate_snapshot(saved)
            else:
                self.data = saved
        except (OSError, json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to load concept data from {self.data_file}: {e}")
            self.data = empty_snapshot()

        return self.data

    def restore(self, graph: ConceptGraph, extractor: ConceptExtractor) -> bool:
        """
        Load the snapshot into a graph and an extractor.

        Returns:
            True if a non-empty snapshot was applied
        """
        data = self.load()
        try:
            graph.load_dict(data.get("notes") or {})
            extractor.load_feedback(data.get("userFeedback") or {})
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding malformed snapshot {self.data_file}: {e}")
            graph.clear()
            extractor.clear_feedback()
            self.data = empty_snapshot()
            return False

        logger.info(f"Restored {len(data.get('notes') or {})} notes from {self.data_file}")
        return bool(data.get("notes") or data.get("userFeedback"))

    def set_data(self, graph: ConceptGraph, extractor: ConceptExtractor):
        """Capture the current graph and feedback as the snapshot."""
        sections = graph.to_dict()
        self.data = {
            "version": CURRENT_VERSION,
            "notes": sections["notes"],
            "concepts": sections["concepts"],
            "userFeedback": extractor.user_feedback,
        }

    def save(self, graph: ConceptGraph, extractor: ConceptExtractor):
        """Capture and write the snapshot to disk."""
        self.set_data(graph, extractor)
        self.write()

    def write(self):
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)
        logger.debug(f"Snapshot saved: {self.data_file}")

    def clear(self):
        """Reset the snapshot to empty and write it."""
        self.data = empty_snapshot()
        self.write()
