"""
ksynth command-line pipeline.
Restore snapshot -> index vault -> save snapshot -> query / export.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ksynth.extraction import ConceptExtractor
from ksynth.graph import ConceptGraph, RelatedNote
from ksynth.services import FileSystemDocumentStore, NoteProcessor
from ksynth.storage import DataManager
from ksynth.utils.config_loader import ConfigLoader


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Setup logging configuration."""
    handlers = [logging.StreamHandler()]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


class KnowledgeSynthesisPipeline:
    """
    Wires the extractor, graph, snapshot store and note processor
    together for one vault directory.
    """

    def __init__(self, config: ConfigLoader, vault_dir: str):
        """
        Initialize pipeline.

        Args:
            config: Configuration loader
            vault_dir: Directory containing the notes
        """
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.extractor = ConceptExtractor.from_config(config.extraction)
        self.graph = ConceptGraph()
        self.data_manager = DataManager(config.storage.data_file)
        self.store = FileSystemDocumentStore(vault_dir, extension=config.storage.note_extension)
        self.processor = NoteProcessor(
            store=self.store,
            extractor=self.extractor,
            graph=self.graph,
            save_callback=self.save,
            note_extension=config.storage.note_extension,
            real_time_suggestions=config.query.real_time_suggestions,
            show_progress=config.general.verbose,
        )

    async def save(self):
        self.data_manager.save(self.graph, self.extractor)

    def restore(self, reset: bool = False):
        """Load the saved index, or start from scratch when reset is set."""
        if reset:
            self.logger.info("Resetting saved concept data")
            self.data_manager.clear()
            return
        self.data_manager.restore(self.graph, self.extractor)

    def step1_index_vault(self) -> int:
        """
        Step 1: Extract concepts from every note in the vault.

        Returns:
            Number of notes indexed
        """
        self.logger.info("=" * 80)
        self.logger.info("STEP 1: Indexing vault")
        self.logger.info("=" * 80)

        # Notes deleted since the last run
        stale = set(self.graph.note_paths()) - set(self.store.list())
        for path in sorted(stale):
            self.graph.remove_note(path)
        if stale:
            self.logger.info(f"Removed {len(stale)} notes no longer in the vault")

        indexed = asyncio.run(self.processor.process_all_notes())
        self.graph.log_statistics()
        return indexed

    def step2_find_related(self, note_path: str, max_results: Optional[int] = None) -> List[RelatedNote]:
        """
        Step 2: Find notes related to one note.

        Args:
            note_path: Path of the note relative to the vault
            max_results: Result limit (default from config)
        """
        if max_results is None:
            max_results = self.config.query.max_related_notes

        related = self.graph.find_related_notes(note_path, max_results)
        if not self.graph.has_note(note_path):
            self.logger.warning(f"Note is not indexed: {note_path}")
        return related

    def step3_export(self, csv_dir: Optional[str] = None, graphml_file: Optional[str] = None):
        """Step 3: Export index tables and the concept network."""
        if csv_dir:
            output_dir = Path(csv_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            notes_df, concepts_df = self.graph.to_dataframes()
            notes_df.to_csv(output_dir / "notes.csv", index=False, encoding="utf-8")
            concepts_df.to_csv(output_dir / "concepts.csv", index=False, encoding="utf-8")
            self.logger.info(f"CSV tables saved to: {output_dir}")

        if graphml_file:
            self.graph.export_to_graphml(graphml_file)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Index a folder of notes by concept and find related notes'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (default: config/config.yaml)'
    )
    parser.add_argument(
        '--vault',
        type=str,
        required=True,
        help='Directory containing the notes'
    )
    parser.add_argument(
        '--note',
        type=str,
        default=None,
        help='Print notes related to this note (path relative to the vault)'
    )
    parser.add_argument(
        '--max_results',
        type=int,
        default=None,
        help='Maximum related notes to print (default: from config)'
    )
    parser.add_argument(
        '--export_csv',
        type=str,
        default=None,
        help='Directory for notes.csv and concepts.csv'
    )
    parser.add_argument(
        '--export_graphml',
        type=str,
        default=None,
        help='Output path for the concept network GraphML file'
    )
    parser.add_argument(
        '--log_file',
        type=str,
        default=None,
        help='Log file path'
    )
    parser.add_argument(
        '--reset',
        action='store_true',
        help='Discard saved concept data before indexing'
    )

    args = parser.parse_args(argv)

    config = ConfigLoader(args.config)
    setup_logging(log_level=config.general.log_level, log_file=args.log_file)
    logger = logging.getLogger(__name__)

    pipeline = KnowledgeSynthesisPipeline(config=config, vault_dir=args.vault)

    try:
        pipeline.restore(reset=args.reset)
        pipeline.step1_index_vault()

        if args.note:
            related = pipeline.step2_find_related(args.note, args.max_results)
            print(json.dumps([note.to_dict() for note in related], ensure_ascii=False, indent=2))

        pipeline.step3_export(csv_dir=args.export_csv, graphml_file=args.export_graphml)
        return 0

    except Exception as e:
        logger.error(f"Pipeline execution failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
