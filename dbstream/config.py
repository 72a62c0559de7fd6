# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so that a backup
attempt can never observe its settings changing halfway through.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, List
import re

if TYPE_CHECKING:
    from dbstream.compressors import Compressor
    from dbstream.remote import RemoteEndpoint


class IndexScope(str, Enum):
    """Distinguished backup targets that are not a single named index."""

    ALL = "all"  # The entire store


# Marker for "back up every index"
ALL = IndexScope.ALL

# Accepted spellings of the entire-store target
_ALL_SPELLINGS = frozenset({"", "all", ":all"})

# Reference per-call timeout for control requests (seconds)
DEFAULT_REQUEST_TIMEOUT = 180.0


def is_entire_store(target: str | None) -> bool:
    """
    Check whether a backup target denotes the entire store.

    The marker, the literal strings "all" and ":all", and an unset
    target are all treated the same.
    """
    if target is None or target is IndexScope.ALL:
        return True
    return target in _ALL_SPELLINGS


def _validate_trigger(trigger: str) -> bool:
    """Triggers become directory names: word characters and dashes only."""
    return bool(trigger) and re.match(r"^[\w-]+$", trigger) is not None


def _raise_if_errors(errors: List[str]) -> None:
    if errors:
        from dbstream.exceptions import ConfigurationError

        raise ConfigurationError(
            "Configuration validation failed",
            details={"errors": errors},
        )


def _with_updates(instance: Any, **kwargs: Any) -> Any:
    current = {f.name: getattr(instance, f.name) for f in fields(instance)}
    current.update(kwargs)
    return type(instance)(**current)


@dataclass(frozen=True)
class JobConfig:
    """
    Immutable description of the backup job an adapter runs inside.

    Artifacts are written under ``<tmp_path>/<trigger>/databases``.
    """

    # Required: job name, used as the artifact's top-level directory
    trigger: str

    # Working directory for in-progress artifacts
    tmp_path: Path = field(default_factory=lambda: Path("./dbstream_tmp"))

    # Optional compression stage appended to every database pipeline
    compressor: Compressor | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not isinstance(self.trigger, str) or not _validate_trigger(self.trigger):
            errors.append(
                f"Invalid trigger: {self.trigger!r}, expected word characters or dashes"
            )

        _raise_if_errors(errors)

        object.__setattr__(self, "tmp_path", Path(self.tmp_path))

    def with_updates(self, **kwargs: Any) -> "JobConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return _with_updates(self, **kwargs)


@dataclass(frozen=True)
class ElasticsearchConfig:
    """
    Immutable configuration for an Elasticsearch backup.

    ``path`` is the node's data directory as set in elasticsearch.yml
    (``path.data``). Leave ``index`` unset, or set it to ``ALL``, to back
    up every index.
    """

    # Required: Elasticsearch data directory
    path: Path

    # Index to back up (default: every index)
    index: str | IndexScope | None = ALL

    # POST <index>/_flush before copying
    invoke_flush: bool = False

    # Disable translog flushing while copying, re-enable afterwards
    disable_flushing: bool = False

    # POST <index>/_close before copying (never for the entire store)
    invoke_close: bool = False

    # Control API location
    host: str = "localhost"
    port: int = 9200

    # Distinguishes several Elasticsearch backups within one job
    database_id: str | None = None

    # Upper bound for each control call (seconds)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if self.path is None or str(self.path) == "":
            errors.append("path is required: the Elasticsearch data directory")

        if not self.host:
            errors.append("host must not be empty")

        if not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            errors.append(f"port must be between 1 and 65535, got {self.port!r}")

        if self.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.request_timeout}")

        _raise_if_errors(errors)

        object.__setattr__(self, "path", Path(self.path))
        if is_entire_store(self.index):
            object.__setattr__(self, "index", ALL)

    @property
    def backup_all(self) -> bool:
        """True when every index is being backed up."""
        return is_entire_store(self.index)

    @property
    def endpoint(self) -> RemoteEndpoint:
        """Control API endpoint targeted by this configuration."""
        from dbstream.remote import RemoteEndpoint

        return RemoteEndpoint(host=self.host, port=self.port, target=self.index)

    def with_updates(self, **kwargs: Any) -> "ElasticsearchConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return _with_updates(self, **kwargs)
