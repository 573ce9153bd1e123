"""Ballot settings — loaded from the config directory and the environment.

Sources, lowest precedence first:
1. Built-in defaults.
2. ``ballot_policy.json`` in the config directory (if present).
3. ``BALLOTBOX_*`` environment variables, after loading ``.env``.

Unknown keys in the JSON file are rejected so that a typo never
silently falls back to a default.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

POLICY_FILENAME = "ballot_policy.json"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_ENV_OVERRIDES = {
    "BALLOTBOX_BLANK_LABEL": "blank_label",
    "BALLOTBOX_MAX_DESCRIPTION_LENGTH": "max_description_length",
    "BALLOTBOX_LOG_LEVEL": "log_level",
}


@dataclass(frozen=True)
class BallotSettings:
    """Runtime settings for an election.

    Invariants:
    - blank_label is non-empty.
    - max_description_length > 0
    - log_level is a standard logging level name.
    """
    blank_label: str = "Blank vote"
    max_description_length: int = 1000
    event_log_name: str = "events.jsonl"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.blank_label or not self.blank_label.strip():
            raise ValueError("blank_label must not be empty")
        if (
            isinstance(self.max_description_length, bool)
            or not isinstance(self.max_description_length, int)
            or self.max_description_length <= 0
        ):
            raise ValueError(
                f"max_description_length must be a positive integer, "
                f"got {self.max_description_length!r}"
            )
        if not self.event_log_name or "/" in self.event_log_name:
            raise ValueError(
                f"event_log_name must be a plain file name, got {self.event_log_name!r}"
            )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BallotSettings:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown ballot settings: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> BallotSettings:
        """Load settings from ``config_dir`` and the environment.

        Args:
            config_dir: Directory holding ``ballot_policy.json``. A missing
                directory or file means defaults.
            environ: Environment mapping. Defaults to ``os.environ`` after
                ``.env`` has been loaded.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        data: dict[str, Any] = {}
        if config_dir is not None:
            path = config_dir / POLICY_FILENAME
            if path.exists():
                with path.open("r", encoding="utf-8") as handle:
                    loaded = json.load(handle)
                if not isinstance(loaded, dict):
                    raise ValueError(f"{path} must contain a JSON object")
                data.update(loaded)
                logger.debug("Loaded ballot settings from %s", path)

        if environ is None:
            load_dotenv()
            environ = os.environ

        settings = cls.from_dict(data)
        return settings.with_overrides(environ)

    def with_overrides(self, environ: Mapping[str, str]) -> BallotSettings:
        """Apply ``BALLOTBOX_*`` overrides from an environment mapping."""
        changes: dict[str, Any] = {}
        for var, name in _ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            if name == "max_description_length":
                try:
                    changes[name] = int(raw)
                except ValueError:
                    raise ValueError(f"{var} must be an integer, got {raw!r}") from None
            else:
                changes[name] = raw
        if not changes:
            return self
        return replace(self, **changes)
