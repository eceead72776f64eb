from __future__ import annotations

import asyncio
from typing import Dict, List

from ksynth.extraction import ConceptExtractor
from ksynth.graph import ConceptGraph
from ksynth.services import FileSystemDocumentStore, NoteProcessor


class MemoryStore:
    """In-memory document store; reads yield to the event loop like real I/O."""

    def __init__(self, notes: Dict[str, str]):
        self.notes = dict(notes)
        self.mtimes: Dict[str, float] = {path: 1.0 for path in notes}
        self.failing: set = set()
        self.reads: List[str] = []

    async def read(self, path: str) -> str:
        await asyncio.sleep(0)
        self.reads.append(path)
        if path in self.failing:
            raise OSError(f"cannot read {path}")
        return self.notes[path]

    def list(self) -> List[str]:
        return sorted(self.notes)

    def modified_time(self, path: str) -> float:
        return self.mtimes.get(path, 1.0)


def make_processor(store: MemoryStore, **kwargs) -> NoteProcessor:
    return NoteProcessor(
        store=store,
        extractor=ConceptExtractor(),
        graph=ConceptGraph(),
        show_progress=False,
        **kwargs,
    )


def test_process_all_notes_skips_failed_reads() -> None:
    store = MemoryStore({
        "a.md": "# Latency\nbody",
        "b.md": "# Latency\nother body",
        "broken.md": "# Latency",
        "image.png": "binary",
    })
    store.failing.add("broken.md")
    saves = []

    async def save() -> None:
        saves.append(True)

    processor = make_processor(store, save_callback=save)
    indexed = asyncio.run(processor.process_all_notes())

    assert indexed == 2
    assert sorted(processor.graph.note_paths()) == ["a.md", "b.md"]
    assert "image.png" not in store.reads
    assert len(saves) == 1

    related = processor.graph.find_related_notes("a.md")
    assert [(note.path, note.relevance, note.shared_concepts) for note in related] == [("b.md", 1.0, ["Latency"])]


def test_unchanged_notes_are_not_reprocessed() -> None:
    store = MemoryStore({"a.md": "# Topic"})
    processor = make_processor(store)

    assert asyncio.run(processor.process_note("a.md")) is True
    assert asyncio.run(processor.process_note("a.md")) is False

    store.mtimes["a.md"] = 2.0
    store.notes["a.md"] = "# Changed"
    assert asyncio.run(processor.process_note("a.md")) is True
    assert processor.graph.get_note_concepts("a.md") == ["Changed"]

    assert asyncio.run(processor.process_note("a.md", force=True)) is True


def test_should_process_note_checks_extension_and_mtime() -> None:
    processor = make_processor(MemoryStore({}))
    assert processor.should_process_note("notes/a.md") is True
    assert processor.should_process_note("notes/a.txt") is False
    assert asyncio.run(processor.process_note("notes/a.txt")) is False


def test_concurrent_edits_to_same_note_are_serialized() -> None:
    store = MemoryStore({"a.md": "# Start"})
    processor = make_processor(store)
    processor.graph.add_note("b.md", ["Start", "Finish"])

    async def edit(index: int) -> bool:
        store.notes["a.md"] = "# Start\n# Finish" if index % 2 else "# Start"
        return await processor.process_note("a.md", force=True)

    async def run() -> List[bool]:
        return await asyncio.gather(*(edit(index) for index in range(20)))

    results = asyncio.run(run())

    assert all(results)
    graph = processor.graph
    for concept in graph.concept_names():
        assert graph.get_concept_weight(concept) == len(graph.get_concept_notes(concept))
    assert set(graph.get_note_concepts("a.md")) in ({"Start"}, {"Start", "Finish"})
    assert processor._locks == {}


def test_lock_entries_are_dropped_after_use() -> None:
    store = MemoryStore({"a.md": "# Topic", "b.md": "# Topic"})
    processor = make_processor(store)

    async def churn() -> None:
        await processor.process_all_notes()
        store.notes["moved.md"] = store.notes.pop("a.md")
        await processor.rename_note("a.md", "moved.md")
        await processor.remove_note("moved.md")
        await processor.add_concept_to_note("b.md", "Extra")
        await processor.update_note_concepts("b.md", ["Topic"])

    asyncio.run(churn())

    assert processor._locks == {}
    assert processor._lock_users == {}
    assert processor.graph.note_paths() == ["b.md"]


def test_remove_and_rename() -> None:
    store = MemoryStore({"old.md": "# Topic", "other.md": "# Topic"})
    processor = make_processor(store)
    asyncio.run(processor.process_all_notes())

    store.notes["new.md"] = store.notes.pop("old.md")
    assert asyncio.run(processor.rename_note("old.md", "new.md")) is True
    assert not processor.graph.has_note("old.md")
    assert processor.graph.get_note_concepts("new.md") == ["Topic"]
    assert processor.graph.get_concept_weight("Topic") == 2

    asyncio.run(processor.remove_note("new.md"))
    assert processor.graph.get_concept_weight("Topic") == 1


def test_rename_keeps_concepts_when_new_path_unreadable() -> None:
    store = MemoryStore({"old.md": "# Topic"})
    processor = make_processor(store)
    asyncio.run(processor.process_note("old.md"))

    store.failing.add("moved.md")
    assert asyncio.run(processor.rename_note("old.md", "moved.md")) is True
    assert processor.graph.get_note_concepts("moved.md") == ["Topic"]


def test_rename_to_non_note_removes_it() -> None:
    store = MemoryStore({"old.md": "# Topic"})
    processor = make_processor(store)
    asyncio.run(processor.process_note("old.md"))

    assert asyncio.run(processor.rename_note("old.md", "old.txt")) is False
    assert processor.graph.note_paths() == []


def test_manual_concept_edits() -> None:
    processor = make_processor(MemoryStore({}))
    asyncio.run(processor.update_note_concepts("a.md", ["x", "y"]))
    assert asyncio.run(processor.add_concept_to_note("a.md", "z")) is True
    assert asyncio.run(processor.add_concept_to_note("a.md", "z")) is False
    asyncio.run(processor.update_note_concepts("a.md", ["z"]))
    assert processor.graph.get_note_concepts("a.md") == ["z"]
    assert processor.graph.concept_names() == ["z"]


def test_handle_modify_respects_real_time_setting() -> None:
    store = MemoryStore({"a.md": "# Topic"})
    processor = make_processor(store, real_time_suggestions=False)
    assert asyncio.run(processor.handle_modify("a.md")) is False
    assert processor.graph.note_paths() == []

    processor.real_time_suggestions = True
    assert asyncio.run(processor.handle_modify("a.md")) is True


def test_file_system_store(tmp_path) -> None:
    (tmp_path / "sub").mkdir()
    (tmp_path / "a.md").write_text("# Alpha", encoding="utf-8")
    (tmp_path / "sub" / "b.md").write_text("# Beta", encoding="utf-8")
    (tmp_path / "c.txt").write_text("ignored", encoding="utf-8")

    store = FileSystemDocumentStore(str(tmp_path))

    assert store.list() == ["a.md", "sub/b.md"]
    assert asyncio.run(store.read("sub/b.md")) == "# Beta"
    assert store.modified_time("a.md") > 0


def test_heading_over_capitalized_line_does_not_relate_notes() -> None:
    store = MemoryStore({
        "caching.md": "# Caching\nThe cache warms up on boot",
        "sharding.md": "# Sharding\nThe shards rebalance nightly",
    })
    processor = make_processor(store)
    asyncio.run(processor.process_all_notes())

    assert processor.graph.get_note_concepts("caching.md") == ["Caching"]
    assert processor.graph.find_related_notes("caching.md") == []
    assert processor.graph.find_related_notes("sharding.md") == []
