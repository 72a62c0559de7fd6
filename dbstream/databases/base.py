# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database adapter protocol - pre-copy calls, streaming copy, cleanup.

Every adapter runs the same lifecycle:

    idle -> pre_copy -> copying -> post_copy -> done
                  \\          \\           \\
                   +----------+-----------+--> failed

Subclasses implement prepare() (pre-copy control calls) and copy() (the
streaming pipeline). When a pre-copy call changes remote state it registers
the call that reverts it with state.defer(); perform() unwinds those in
reverse order once the copy has returned or raised, so the store is never
left flush-disabled or half-configured.

Per-attempt state lives in an AdapterRunState created by perform() and
dropped when it returns. Nothing about an attempt is stored on the adapter.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Tuple

import structlog
from ulid import ULID

from dbstream.artifact import ArtifactInfo, describe_artifact
from dbstream.config import JobConfig
from dbstream.exceptions import DBStreamError
from dbstream.remote import ControlCallResult, RemoteControlClient

logger = structlog.get_logger()

Cleanup = Callable[[], Awaitable[Any]]


class AdapterPhase(str, Enum):
    """Lifecycle phase of one backup attempt."""

    IDLE = "idle"
    PRE_COPY = "pre_copy"
    COPYING = "copying"
    POST_COPY = "post_copy"
    DONE = "done"
    FAILED = "failed"


# Copy failures still pass through post_copy so deferred cleanups run
_TRANSITIONS: Dict[AdapterPhase, FrozenSet[AdapterPhase]] = {
    AdapterPhase.IDLE: frozenset({AdapterPhase.PRE_COPY, AdapterPhase.FAILED}),
    AdapterPhase.PRE_COPY: frozenset(
        {AdapterPhase.COPYING, AdapterPhase.POST_COPY, AdapterPhase.FAILED}
    ),
    AdapterPhase.COPYING: frozenset({AdapterPhase.POST_COPY, AdapterPhase.FAILED}),
    AdapterPhase.POST_COPY: frozenset({AdapterPhase.DONE, AdapterPhase.FAILED}),
    AdapterPhase.DONE: frozenset(),
    AdapterPhase.FAILED: frozenset(),
}


@dataclass
class AdapterRunState:
    """State of a single backup attempt."""

    attempt_id: str = field(default_factory=lambda: str(ULID()))
    phase: AdapterPhase = AdapterPhase.IDLE
    history: List[AdapterPhase] = field(default_factory=lambda: [AdapterPhase.IDLE])
    calls: List[ControlCallResult] = field(default_factory=list)
    cleanup_errors: List[Exception] = field(default_factory=list)
    _cleanups: List[Tuple[str, Cleanup]] = field(default_factory=list)

    def advance(self, phase: AdapterPhase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal adapter transition: {self.phase.value} -> {phase.value}")
        logger.debug(
            "adapter_phase_changed",
            attempt_id=self.attempt_id,
            previous=self.phase.value,
            phase=phase.value,
        )
        self.phase = phase
        self.history.append(phase)

    def defer(self, name: str, cleanup: Cleanup) -> None:
        """Register the call that reverts a pre-copy call which succeeded."""
        self._cleanups.append((name, cleanup))

    def take_cleanups(self) -> List[Tuple[str, Cleanup]]:
        """Pop every pending cleanup, most recently registered first."""
        pending = list(reversed(self._cleanups))
        self._cleanups.clear()
        return pending

    @property
    def pending_cleanups(self) -> List[str]:
        return [name for name, _ in self._cleanups]


@dataclass
class BackupResult:
    """Result of a successful backup attempt."""

    attempt_id: str
    adapter: str
    artifact: ArtifactInfo
    calls: List[ControlCallResult]
    duration_seconds: float
    phases: List[AdapterPhase] = field(default_factory=list)

    @property
    def artifact_path(self) -> Path:
        return self.artifact.path


def clean_database_id(database_id: str | None) -> str | None:
    """Database IDs end up in file names: non-word characters become '_'."""
    if database_id is None or str(database_id) == "":
        return None
    cleaned = re.sub(r"\W", "_", str(database_id))
    if cleaned != str(database_id):
        logger.warning(
            "database_id_sanitized",
            database_id=str(database_id),
            cleaned=cleaned,
        )
    return cleaned


class DatabaseAdapter(ABC):
    """
    Base class for store-specific backup adapters.

    Subclasses set ``self.client`` if they issue control calls.
    """

    client: RemoteControlClient | None = None

    def __init__(self, job: JobConfig, database_id: str | None = None) -> None:
        self.job = job
        self.database_id = clean_database_id(database_id)

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def dump_path(self) -> Path:
        """Directory the artifact is written to: <tmp>/<trigger>/databases."""
        return self.job.tmp_path / self.job.trigger / "databases"

    @property
    def dump_filename(self) -> str:
        """Artifact name without extension: <Adapter>[-<database_id>]."""
        if self.database_id:
            return f"{self.name}-{self.database_id}"
        return self.name

    @abstractmethod
    async def prepare(self, state: AdapterRunState) -> None:
        """Issue pre-copy control calls, deferring a cleanup for each state change."""

    @abstractmethod
    async def copy(self, state: AdapterRunState) -> Path:
        """Stream the store's data into the artifact and return its path."""

    async def control(
        self,
        state: AdapterRunState,
        method: str,
        path: str,
        action: str,
        body: dict[str, Any] | None = None,
    ) -> ControlCallResult:
        """
        Issue one control call and record it on the attempt.

        Raises:
            RemoteCallError: The call failed
        """
        if self.client is None:
            raise RuntimeError(f"{self.name} has no control client configured")

        result = await self.client.call(method, path, body)
        state.calls.append(result)
        if not result.ok:
            raise result.to_error(action)
        return result

    async def perform(self) -> BackupResult:
        """
        Run one backup attempt.

        The first failure is raised. Cleanup failures that follow it are
        attached as ``details["cleanup_errors"]``. When only cleanups fail
        the attempt still fails, since remote state was left inconsistent.

        Returns:
            BackupResult describing the artifact
        """
        state = AdapterRunState()
        log = logger.bind(
            attempt_id=state.attempt_id,
            adapter=self.name,
            database_id=self.database_id,
        )
        start_time = datetime.now(UTC)

        log.info("database_backup_started", trigger=self.job.trigger)

        try:
            artifact = await self._prepare_and_copy(state)
        except BaseException as e:
            # Cleanups run on every exit path, including cancellation
            await self._post_copy(state, log)
            self._fail(state, log, e, state.cleanup_errors)
            raise

        await self._post_copy(state, log)

        if state.cleanup_errors:
            first, *rest = state.cleanup_errors
            self._fail(state, log, first, rest)
            raise first

        state.advance(AdapterPhase.DONE)
        duration = (datetime.now(UTC) - start_time).total_seconds()

        log.info(
            "database_backup_finished",
            artifact=str(artifact.path),
            size_bytes=artifact.size_bytes,
            sha256=artifact.sha256,
            duration_seconds=duration,
        )

        return BackupResult(
            attempt_id=state.attempt_id,
            adapter=self.name,
            artifact=artifact,
            calls=list(state.calls),
            duration_seconds=duration,
            phases=list(state.history),
        )

    async def _prepare_and_copy(self, state: AdapterRunState) -> ArtifactInfo:
        self.dump_path.mkdir(parents=True, exist_ok=True)

        state.advance(AdapterPhase.PRE_COPY)
        await self.prepare(state)

        state.advance(AdapterPhase.COPYING)
        artifact_path = await self.copy(state)
        return await describe_artifact(artifact_path)

    async def _post_copy(self, state: AdapterRunState, log: Any) -> None:
        if state.phase in (AdapterPhase.PRE_COPY, AdapterPhase.COPYING):
            state.advance(AdapterPhase.POST_COPY)

        for name, cleanup in state.take_cleanups():
            try:
                await cleanup()
            except Exception as e:
                state.cleanup_errors.append(e)
                log.error(
                    "cleanup_call_failed",
                    cleanup=name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            else:
                log.info("cleanup_call_succeeded", cleanup=name)

    def _fail(
        self,
        state: AdapterRunState,
        log: Any,
        error: BaseException,
        additional: List[Exception],
    ) -> None:
        state.advance(AdapterPhase.FAILED)

        others = [str(e) for e in additional if e is not error]
        if others and isinstance(error, DBStreamError):
            error.details["cleanup_errors"] = others

        log.error(
            "database_backup_failed",
            error_type=type(error).__name__,
            error=str(error),
            cleanup_errors=others,
        )
