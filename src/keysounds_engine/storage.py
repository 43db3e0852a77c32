"""YAML persistence for rules, effects, hotkeys and volume state."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


class Section(Enum):
    """Persisted state section.

    Each section lives in its own file and is owned by one store.
    """

    RULES = "rules"
    EFFECTS = "effects"
    HOTKEYS = "hotkeys"
    VOLUME = "volume"


@dataclass(frozen=True)
class StoragePaths:
    """Paths to the persisted state files.

    Applications inject these paths to decide where state lives.

    Attributes:
        rules: Application rules and default profiles
        effects: Per-device audio effect parameters
        hotkeys: Hotkey groups
        volume: Volume, mute and lock state
    """

    rules: Path
    effects: Path
    hotkeys: Path
    volume: Path

    @classmethod
    def in_directory(cls, directory: Path) -> "StoragePaths":
        """Standard file names inside a single configuration directory."""
        return cls(
            rules=directory / "rules.yaml",
            effects=directory / "effects.yaml",
            hotkeys=directory / "hotkeys.yaml",
            volume=directory / "volume.yaml",
        )


class YamlStorage:
    """Reads and writes whole sections as YAML documents.

    Args:
        paths: Location of every section file
    """

    def __init__(self, paths: StoragePaths):
        self.paths = paths

    def read(self, section: Section) -> Any | None:
        """Read a section.

        Args:
            section: Section to read

        Returns:
            Parsed document, or None if the file is missing or unreadable
        """
        path = self.section_to_path(section)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read {section.value} from {path}: {e}")
            return None

    def write(self, section: Section, data: Any) -> None:
        """Replace a section with ``data``.

        Args:
            section: Section to write
            data: Plain YAML-serializable data

        Raises:
            PersistenceFailure: If the write fails
        """
        path = self.section_to_path(section)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceFailure(f"Failed to write {section.value} to {path}: {e}") from e

        logger.info(f"Saved {section.value} to {path}")

    def section_to_path(self, section: Section) -> Path:
        """Get the file backing a section."""
        section_map = {
            Section.RULES: self.paths.rules,
            Section.EFFECTS: self.paths.effects,
            Section.HOTKEYS: self.paths.hotkeys,
            Section.VOLUME: self.paths.volume,
        }
        return section_map[section]
