"""
Configuration loader for ksynth.
Loads and manages configuration from YAML files.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass


@dataclass
class ExtractionConfig:
    """Concept extraction configuration."""
    extraction_sensitivity: int = 5
    # Declared for hosts that expose them; no extraction strategy reads these
    include_tags: bool = True
    include_links: bool = True


@dataclass
class QueryConfig:
    """Related-note query configuration."""
    max_related_notes: int = 10
    real_time_suggestions: bool = True


@dataclass
class StorageConfig:
    """Snapshot storage configuration."""
    data_file: str = "output/concept_data.json"
    note_extension: str = ".md"


@dataclass
class GeneralConfig:
    """General configuration."""
    output_dir: str = "output"
    log_dir: str = "logs"
    log_level: str = "INFO"
    verbose: bool = True


class ConfigLoader:
    """
    Configuration loader for ksynth.
    Loads configuration from YAML files and provides typed access.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        raw_config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to configuration YAML file.
                        If None, uses default config/config.yaml
            raw_config: Already-parsed configuration mapping.
                        Skips file loading when given.
        """
        self.config_path: Optional[Path] = None

        if raw_config is None:
            if config_path is None:
                possible_paths = [
                    Path("config/config.yaml"),
                    Path("../config/config.yaml"),
                    Path(__file__).parent.parent.parent / "config" / "config.yaml",
                ]
                for path in possible_paths:
                    if path.exists():
                        config_path = str(path)
                        break

            if config_path is None:
                raise FileNotFoundError(
                    "Could not find config.yaml. Please specify config_path."
                )

            self.config_path = Path(config_path)
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

            with open(self.config_path, "r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)

        # An empty YAML file parses to None
        self.raw_config: Dict[str, Any] = raw_config or {}

        self.extraction = self._load_extraction_config()
        self.query = self._load_query_config()
        self.storage = self._load_storage_config()
        self.general = self._load_general_config()

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw_config.get(name) or {}

    def _load_extraction_config(self) -> ExtractionConfig:
        """Load extraction configuration."""
        data = self._section("extraction")
        return ExtractionConfig(
            extraction_sensitivity=int(data.get("extraction_sensitivity", 5)),
            include_tags=bool(data.get("include_tags", True)),
            include_links=bool(data.get("include_links", True)),
        )

    def _load_query_config(self) -> QueryConfig:
        """Load query configuration."""
        data = self._section("query")
        return QueryConfig(
            max_related_notes=int(data.get("max_related_notes", 10)),
            real_time_suggestions=bool(data.get("real_time_suggestions", True)),
        )

    def _load_storage_config(self) -> StorageConfig:
        data = self._section("storage")
        return StorageConfig(
            data_file=data.get("data_file", "output/concept_data.json"),
            note_extension=data.get("note_extension", ".md"),
        )

    def _load_general_config(self) -> GeneralConfig:
        """Load general configuration."""
        data = self._section("general")
        return GeneralConfig(
            output_dir=data.get("output_dir", "output"),
            log_dir=data.get("log_dir", "logs"),
            log_level=data.get("log_level", "INFO"),
            verbose=data.get("verbose", True),
        )
