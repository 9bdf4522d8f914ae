"""Persisted settings for the engine and the analysis session."""

from __future__ import annotations

import json
import os
import shutil
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from utils import ReportingLevel, report, warning_text

APP_NAME = "multipv-analyzer"
CONFIG_FILENAME = "config.json"

DEPTH_RANGE = (1, 100)
MULTIPV_RANGE = (1, 10)

ENGINE_CANDIDATES = (
    "stockfish",
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
    "/opt/homebrew/bin/stockfish",
)


@dataclass
class EngineConfig:
    path: Optional[str] = None
    depth: int = 20
    multipv: int = 3
    threads: int = 4
    hash: int = 256
    contempt: int = 0


@dataclass
class Config:
    engine: EngineConfig = field(default_factory=EngineConfig)

    @staticmethod
    def config_path() -> Path:
        base = os.environ.get("XDG_CONFIG_HOME")
        root = Path(base) if base else Path.home() / ".config"
        return root / APP_NAME / CONFIG_FILENAME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        engine_data = data.get("engine", {})
        if not isinstance(engine_data, dict):
            raise ValueError("'engine' section must be an object")
        known = {f.name for f in fields(EngineConfig)}
        values = {}
        for key, value in engine_data.items():
            if key not in known:
                continue
            if key == "path":
                if value is not None and not isinstance(value, str):
                    raise ValueError("engine.path must be a string")
            elif isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"engine.{key} must be an integer")
            values[key] = value
        return cls(engine=EngineConfig(**values))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def load(
        cls,
        path: Optional[Union[Path, str]] = None,
        *,
        reporting_level: ReportingLevel = ReportingLevel.BASIC,
    ) -> "Config":
        """Read the config file, falling back to defaults if it is missing or unreadable."""
        config_path = Path(path) if path else cls.config_path()
        if not config_path.exists():
            return cls()
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            return cls.from_dict(data)
        except (OSError, ValueError, TypeError) as exc:
            report(
                warning_text(f"Ignoring config at {config_path}: {exc}"),
                reporting_level,
            )
            return cls()

    def save(self, path: Optional[Union[Path, str]] = None) -> Path:
        config_path = Path(path) if path else self.config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2)
            handle.write("\n")
        return config_path

    def engine_path(self) -> Optional[str]:
        """Configured engine path, or the first Stockfish found on this machine."""
        if self.engine.path:
            return self.engine.path
        for candidate in ENGINE_CANDIDATES:
            found = shutil.which(candidate)
            if found:
                return found
        return None


def validate_depth(depth: int) -> int:
    low, high = DEPTH_RANGE
    if not low <= depth <= high:
        raise ValueError(f"Depth must be between {low} and {high}")
    return depth


def validate_multipv(multipv: int) -> int:
    low, high = MULTIPV_RANGE
    if not low <= multipv <= high:
        raise ValueError(f"MultiPV must be between {low} and {high}")
    return multipv
