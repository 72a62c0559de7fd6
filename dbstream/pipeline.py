# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream Pipeline - Streaming chain of external processes.

A pipeline runs N external commands so that the stdout of stage i feeds
the stdin of stage i+1 through an OS pipe. Every stage is spawned before
any is awaited, so data streams through the kernel's pipe buffers and
back-pressure works without application-level buffering. Only stderr is
captured, into a bounded buffer per stage; stdout of the last stage goes to
a file (or /dev/null), never into memory.

All stages run to completion. The aggregate verdict is computed only after
every stage has exited, so a downstream failure is reported even when the
upstream writer "succeeded" into a broken pipe.
"""

import asyncio
import os
import shlex
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Sequence, Tuple

import structlog

from dbstream.exceptions import ConfigurationError

logger = structlog.get_logger()

# Default bound on captured stderr per stage (bytes)
DEFAULT_STDERR_LIMIT = 64 * 1024

# Exit code recorded for a stage whose program could not be started
SPAWN_FAILURE_EXIT_CODE = 127

_READ_CHUNK = 4096


@dataclass(frozen=True)
class PipelineStage:
    """
    One external command in a pipeline.

    Only the final stage may redirect its stdout to ``output_path``.
    """

    argv: Tuple[str, ...]
    output_path: Path | None = None
    success_codes: FrozenSet[int] = frozenset({0})

    def __post_init__(self) -> None:
        if not self.argv:
            raise ConfigurationError("A pipeline stage requires a command")
        object.__setattr__(self, "argv", tuple(str(arg) for arg in self.argv))
        object.__setattr__(self, "success_codes", frozenset(self.success_codes))
        if self.output_path is not None:
            object.__setattr__(self, "output_path", Path(self.output_path))

    @property
    def command(self) -> str:
        """Shell-style rendering of the stage, for logs and diagnostics."""
        command = shlex.join(self.argv)
        if self.output_path is not None:
            command += f" > {shlex.quote(str(self.output_path))}"
        return command


@dataclass
class StageResult:
    """Outcome of one stage after the pipeline has run."""

    position: int  # 1-based
    stage: PipelineStage
    exit_code: int
    stderr: str = ""
    stderr_truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code in self.stage.success_codes

    @property
    def exit_status(self) -> str:
        """Exit code, with the signal name when the stage was killed."""
        if self.exit_code >= 0:
            return str(self.exit_code)
        try:
            name = signal.Signals(-self.exit_code).name
        except ValueError:
            name = f"signal {-self.exit_code}"
        return f"{self.exit_code} ({name})"


class Pipeline:
    """
    Single-use chain of external processes.

    Usage:
        pipeline = Pipeline()
        pipeline.add(["tar", "-cf", "-", "/data"])
        pipeline.add(["gzip"])
        pipeline.add(["cat"], output_path="/backups/data.tar.gz")
        await pipeline.run()
        if not pipeline.success:
            print(pipeline.error_messages)
    """

    def __init__(self, stderr_limit: int = DEFAULT_STDERR_LIMIT) -> None:
        if stderr_limit < 1:
            raise ConfigurationError(f"stderr_limit must be >= 1, got {stderr_limit}")
        self.stderr_limit = stderr_limit
        self._stages: List[PipelineStage] = []
        self._results: List[StageResult] = []
        self._has_run = False

    def add(
        self,
        command: PipelineStage | str | Sequence[str],
        *,
        output_path: Path | str | None = None,
        success_codes: Iterable[int] = (0,),
    ) -> PipelineStage:
        """
        Append a stage.

        ``command`` is an argv sequence, a command line (split with shlex),
        or a ready-made PipelineStage.

        Raises:
            ConfigurationError: The pipeline has already run
        """
        if self._has_run:
            raise ConfigurationError(
                "Cannot add a stage to a pipeline that has already run",
                details={"command": command if isinstance(command, str) else str(command)},
            )

        if isinstance(command, PipelineStage):
            stage = command
        else:
            argv = shlex.split(command) if isinstance(command, str) else tuple(command)
            stage = PipelineStage(
                argv=tuple(argv),
                output_path=Path(output_path) if output_path is not None else None,
                success_codes=frozenset(success_codes),
            )

        self._stages.append(stage)
        return stage

    @property
    def stages(self) -> List[PipelineStage]:
        return list(self._stages)

    @property
    def results(self) -> List[StageResult]:
        return list(self._results)

    @property
    def has_run(self) -> bool:
        return self._has_run

    @property
    def success(self) -> bool:
        """True iff the pipeline ran and every stage exited with a success code."""
        return self._has_run and all(result.ok for result in self._results)

    @property
    def failed_stages(self) -> List[StageResult]:
        return [result for result in self._results if not result.ok]

    @property
    def warnings(self) -> List[StageResult]:
        """Stages that exited non-zero with a code they were allowed to return."""
        return [r for r in self._results if r.ok and r.exit_code != 0]

    @property
    def error_messages(self) -> str:
        """
        One block per failing stage: position, command, exit code, stderr.

        Empty iff the pipeline succeeded.
        """
        if not self._has_run:
            return "Pipeline has not been run."

        count = len(self._stages)
        blocks: List[str] = []
        for result in self.failed_stages:
            lines = [
                f"Stage {result.position} of {count} failed "
                f"with exit code {result.exit_status}: {result.stage.command}"
            ]
            stderr = result.stderr.strip()
            if stderr:
                if result.stderr_truncated:
                    lines.append(f"  (stderr truncated to the last {self.stderr_limit} bytes)")
                lines.extend(f"  {line}" for line in stderr.splitlines())
            blocks.append("\n".join(lines))
        return "\n".join(blocks)

    def stage_details(self) -> List[Dict[str, Any]]:
        """Failing stages as plain dicts, for exception details."""
        return [
            {
                "position": result.position,
                "command": result.stage.command,
                "exit_code": result.exit_code,
                "stderr": result.stderr,
            }
            for result in self.failed_stages
        ]

    def _validate(self) -> None:
        if not self._stages:
            raise ConfigurationError("Cannot run a pipeline with no stages")
        for position, stage in enumerate(self._stages[:-1], start=1):
            if stage.output_path is not None:
                raise ConfigurationError(
                    "Only the final pipeline stage may redirect its output",
                    details={"position": position, "command": stage.command},
                )

    async def run(self) -> None:
        """
        Spawn every stage, wire them together and wait for all to exit.

        Raises:
            ConfigurationError: The pipeline already ran or is malformed
        """
        if self._has_run:
            raise ConfigurationError("Pipeline has already been run")
        self._validate()
        self._has_run = True

        count = len(self._stages)
        logger.info(
            "pipeline_started",
            stages=count,
            commands=[stage.command for stage in self._stages],
        )

        processes: List[asyncio.subprocess.Process | None] = []
        spawn_errors: Dict[int, str] = {}
        upstream_fd: int | None = None
        completed = False

        try:
            for position, stage in enumerate(self._stages, start=1):
                stdin: Any = upstream_fd if upstream_fd is not None else subprocess.DEVNULL
                stdout: Any = subprocess.DEVNULL
                upstream_fd = None
                sink = None
                process = None

                try:
                    if position < count:
                        upstream_fd, stdout = os.pipe()
                    elif stage.output_path is not None:
                        sink = open(stage.output_path, "wb")
                        stdout = sink

                    process = await asyncio.create_subprocess_exec(
                        *stage.argv,
                        stdin=stdin,
                        stdout=stdout,
                        stderr=asyncio.subprocess.PIPE,
                        start_new_session=True,
                    )
                except OSError as e:
                    spawn_errors[position] = str(e)
                    logger.error(
                        "pipeline_stage_spawn_failed",
                        position=position,
                        command=stage.command,
                        error=str(e),
                    )
                finally:
                    # The child holds its own copies of these descriptors
                    if isinstance(stdin, int) and stdin >= 0:
                        os.close(stdin)
                    if isinstance(stdout, int) and stdout >= 0:
                        os.close(stdout)
                    if sink is not None:
                        sink.close()

                processes.append(process)

            results = await asyncio.gather(
                *(
                    self._collect(position, stage, process, spawn_errors.get(position))
                    for position, (stage, process) in enumerate(
                        zip(self._stages, processes), start=1
                    )
                )
            )
            self._results = list(results)
            completed = True

        finally:
            if upstream_fd is not None:
                os.close(upstream_fd)
            if not completed:
                await _terminate(processes)

        self._log_outcome()

    async def _collect(
        self,
        position: int,
        stage: PipelineStage,
        process: asyncio.subprocess.Process | None,
        spawn_error: str | None,
    ) -> StageResult:
        if process is None:
            return StageResult(
                position=position,
                stage=stage,
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                stderr=spawn_error or "",
            )

        stderr, truncated = "", False
        if process.stderr is not None:
            stderr, truncated = await _drain_bounded(process.stderr, self.stderr_limit)
        exit_code = await process.wait()

        return StageResult(
            position=position,
            stage=stage,
            exit_code=exit_code,
            stderr=stderr,
            stderr_truncated=truncated,
        )

    def _log_outcome(self) -> None:
        for result in self._results:
            if not result.ok:
                logger.error(
                    "pipeline_stage_failed",
                    position=result.position,
                    command=result.stage.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr.strip(),
                )
            elif result.exit_code != 0:
                logger.warning(
                    "pipeline_stage_warning",
                    position=result.position,
                    command=result.stage.command,
                    exit_code=result.exit_code,
                    stderr=result.stderr.strip(),
                )

        logger.info(
            "pipeline_finished",
            success=self.success,
            exit_codes=[result.exit_code for result in self._results],
        )


async def _drain_bounded(stream: asyncio.StreamReader, limit: int) -> Tuple[str, bool]:
    """Read a stream to EOF, keeping only its last ``limit`` bytes."""
    buffer = bytearray()
    truncated = False

    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > limit:
            del buffer[: len(buffer) - limit]
            truncated = True

    return buffer.decode("utf-8", errors="replace"), truncated


async def _terminate(processes: List[asyncio.subprocess.Process | None]) -> None:
    """
    Kill and reap every stage along with anything it spawned.

    Each stage leads its own process group, so a shell stage's children
    die with it and release the stderr pipe wait() is blocked on.
    """
    for process in processes:
        # A stage that already exited may have left children holding its pipes
        if process is None:
            continue
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    for process in processes:
        if process is not None:
            await process.wait()
