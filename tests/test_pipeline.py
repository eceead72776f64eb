from __future__ import annotations

import json

import yaml

from ksynth import pipeline


def write_config(tmp_path) -> str:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "storage": {"data_file": str(tmp_path / "data" / "concept_data.json")},
        "general": {"verbose": False},
    }), encoding="utf-8")
    return str(config_file)


def test_pipeline_indexes_vault_and_exports(tmp_path, capsys) -> None:
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "a.md").write_text("# Latency\nNotes about caching.", encoding="utf-8")
    (vault / "b.md").write_text("# Latency\nMore about queues.", encoding="utf-8")

    exit_code = pipeline.main([
        "--config", write_config(tmp_path),
        "--vault", str(vault),
        "--note", "a.md",
        "--export_csv", str(tmp_path / "csv"),
        "--export_graphml", str(tmp_path / "network.graphml"),
    ])

    assert exit_code == 0
    related = json.loads(capsys.readouterr().out)
    assert related == [{"path": "b.md", "relevance": 1.0, "shared_concepts": ["Latency"]}]
    assert (tmp_path / "csv" / "notes.csv").exists()
    assert (tmp_path / "csv" / "concepts.csv").exists()
    assert (tmp_path / "network.graphml").exists()

    snapshot = json.loads((tmp_path / "data" / "concept_data.json").read_text(encoding="utf-8"))
    assert snapshot["concepts"]["Latency"]["weight"] == 2


def test_pipeline_drops_deleted_notes_on_rerun(tmp_path) -> None:
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "a.md").write_text("# Latency", encoding="utf-8")
    (vault / "b.md").write_text("# Latency", encoding="utf-8")
    config_file = write_config(tmp_path)

    assert pipeline.main(["--config", config_file, "--vault", str(vault)]) == 0
    (vault / "b.md").unlink()
    assert pipeline.main(["--config", config_file, "--vault", str(vault)]) == 0

    snapshot = json.loads((tmp_path / "data" / "concept_data.json").read_text(encoding="utf-8"))
    assert list(snapshot["notes"]) == ["a.md"]
    assert snapshot["concepts"]["Latency"] == {"documentIds": ["a.md"], "weight": 1}


def test_pipeline_fails_for_missing_vault(tmp_path) -> None:
    exit_code = pipeline.main([
        "--config", write_config(tmp_path),
        "--vault", str(tmp_path / "does-not-exist"),
    ])
    assert exit_code == 1
