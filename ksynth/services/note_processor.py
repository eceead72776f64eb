"""
Note processing service for ksynth.
Reads notes from a document store, extracts their concepts and keeps
the concept graph up to date.
"""

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from tqdm import tqdm

from ksynth.extraction.concept_extractor import ConceptExtractor
from ksynth.graph.concept_graph import ConceptGraph


logger = logging.getLogger(__name__)

SaveCallback = Callable[[], Awaitable[None]]


class DocumentStore(Protocol):
    """Source of note text, keyed by note path."""

    async def read(self, path: str) -> str:
        ...

    def list(self) -> List[str]:
        ...

    def modified_time(self, path: str) -> float:
        ...


class FileSystemDocumentStore:
    """
    Document store over a directory of note files.
    Notes are identified by their POSIX path relative to the root.
    """

    def __init__(self, root: str, extension: str = ".md"):
        self.root = Path(root)
        self.extension = extension

    def _resolve(self, path: str) -> Path:
        return self.root / Path(path)

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(self._resolve(path).read_text, encoding="utf-8")

    def list(self) -> List[str]:
        if not self.root.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {self.root}")
        return sorted(
            file.relative_to(self.root).as_posix()
            for file in self.root.rglob(f"*{self.extension}")
            if file.is_file()
        )

    def modified_time(self, path: str) -> float:
        return self._resolve(path).stat().st_mtime


class NoteProcessor:
    """
    Read -> extract -> index pipeline for single notes and whole vaults.

    Work on one note path is serialized through a per-path lock, so
    overlapping change events for the same note cannot interleave their
    read and index steps. Different notes are processed independently.
    """

    def __init__(
        self,
        store: DocumentStore,
        extractor: ConceptExtractor,
        graph: ConceptGraph,
        save_callback: Optional[SaveCallback] = None,
        note_extension: str = ".md",
        real_time_suggestions: bool = True,
        show_progress: bool = True
    ):
        """
        Initialize note processor.

        Args:
            store: Document store to read notes from
            extractor: Concept extractor
            graph: Concept graph to index into
            save_callback: Awaited after each change to persist the index
            note_extension: Only paths with this suffix are processed
            real_time_suggestions: Whether handle_modify re-indexes notes
            show_progress: Show a tqdm progress bar for batch processing
        """
        self.store = store
        self.extractor = extractor
        self.graph = graph
        self.save_callback = save_callback
        self.note_extension = note_extension
        self.real_time_suggestions = real_time_suggestions
        self.show_progress = show_progress

        self._locks: Dict[str, asyncio.Lock] = {}
        # path -> number of tasks holding or waiting on its lock
        self._lock_users: Dict[str, int] = {}
        # path -> modification time at last successful processing
        self._processed: Dict[str, float] = {}

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    @contextlib.asynccontextmanager
    async def _locked(self, *paths: str):
        """
        Hold the locks of one or more note paths.

        Locks are always taken in sorted path order. A path's lock is
        dropped from the map once no task holds or waits on it.
        """
        ordered = sorted(set(paths))
        for path in ordered:
            self._lock_users[path] = self._lock_users.get(path, 0) + 1
        try:
            async with contextlib.AsyncExitStack() as stack:
                for path in ordered:
                    await stack.enter_async_context(self._lock_for(path))
                yield
        finally:
            for path in ordered:
                self._lock_users[path] -= 1
                if self._lock_users[path] == 0:
                    del self._lock_users[path]
                    self._locks.pop(path, None)

    async def _save(self):
        if self.save_callback is not None:
            await self.save_callback()

    def is_note(self, path: str) -> bool:
        return path.endswith(self.note_extension)

    def should_process_note(self, path: str, modified_time: Optional[float] = None) -> bool:
        """
        Check if a note needs processing.

        Args:
            path: Note path
            modified_time: Current modification time, if known

        Returns:
            True if the note was never processed or changed since
        """
        if not self.is_note(path):
            return False
        if modified_time is None:
            return True
        last_processed = self._processed.get(path)
        return last_processed is None or last_processed < modified_time

    async def process_note(self, path: str, force: bool = False, save: bool = True) -> bool:
        """
        Extract and index a single note.

        Args:
            path: Note path
            force: Re-index even if the note is unchanged
            save: Await the save callback afterwards

        Returns:
            True if the note was indexed. Read failures are logged and
            return False.
        """
        if not self.is_note(path):
            return False

        async with self._locked(path):
            indexed = await self._process_locked(path, force)

        if indexed and save:
            await self._save()
        return indexed

    async def _process_locked(self, path: str, force: bool) -> bool:
        try:
            modified_time = self.store.modified_time(path)
            if not force and not self.should_process_note(path, modified_time):
                logger.debug(f"Skipping unchanged note: {path}")
                return False
            content = await self.store.read(path)
        except Exception as e:
            logger.error(f"Error processing note {path}: {e}")
            return False

        concepts = self.extractor.extract_concepts(content)
        self.graph.add_note(path, concepts)
        self._processed[path] = modified_time
        logger.debug(f"Indexed {path}: {len(concepts)} concepts")
        return True

    async def process_all_notes(self) -> int:
        """
        Process every note in the store.

        A note that fails to read is skipped; the rest of the batch
        continues. The index is saved once at the end.

        Returns:
            Number of notes indexed
        """
        paths = self.store.list()
        logger.info(f"Processing {len(paths)} notes...")

        indexed = 0
        for path in tqdm(paths, desc="Notes", disable=not self.show_progress):
            if await self.process_note(path, save=False):
                indexed += 1

        await self._save()
        logger.info(f"Completed processing: {indexed} of {len(paths)} notes indexed")
        return indexed

    async def handle_modify(self, path: str) -> bool:
        """Re-index a modified note when real-time suggestions are enabled."""
        if not self.real_time_suggestions:
            return False
        return await self.process_note(path)

    async def remove_note(self, path: str):
        """Drop a deleted note from the index."""
        async with self._locked(path):
            self.graph.remove_note(path)
            self._processed.pop(path, None)
        await self._save()

    async def rename_note(self, old_path: str, new_path: str) -> bool:
        """
        Move a renamed note to its new path and re-index it.

        If the note cannot be re-read at its new path, its previous
        concepts are carried over unchanged.

        Returns:
            True if the note is indexed under new_path afterwards
        """
        async with self._locked(old_path, new_path):
            self._processed.pop(old_path, None)

            if not self.is_note(new_path):
                self.graph.remove_note(old_path)
                indexed = False
            else:
                self.graph.rename_note(old_path, new_path)
                indexed = await self._process_locked(new_path, force=True) or self.graph.has_note(new_path)

        await self._save()
        return indexed

    async def update_note_concepts(self, path: str, concepts: List[str]):
        """Overwrite a note's concepts after a manual edit."""
        async with self._locked(path):
            self.graph.update_note_concepts(path, concepts)
        await self._save()

    async def add_concept_to_note(self, path: str, concept: str) -> bool:
        """Add one concept to a note. Returns False if it was already there."""
        async with self._locked(path):
            added = self.graph.add_concept_to_note(path, concept)
        if added:
            logger.info(f"Added concept '{concept}' to {path}")
            await self._save()
        return added
