# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream Compressors - Compression stages for database pipelines.

A compressor is a capability with two operations: append its stage to a
pipeline, and report the extension of what that stage produces. The
extension is never inferred from the stage itself.
"""

import shlex
from abc import ABC, abstractmethod
from typing import List

from dbstream.exceptions import ConfigurationError
from dbstream.pipeline import Pipeline, PipelineStage
from dbstream.utilities import utility


def _validate_level(level: int | None) -> int | None:
    if level is not None and not 1 <= level <= 9:
        raise ConfigurationError(f"Compression level must be between 1 and 9, got {level}")
    return level


class Compressor(ABC):
    """Base class for compression stages."""

    @property
    @abstractmethod
    def extension(self) -> str:
        """File extension appended to the artifact, e.g. ".gz"."""

    @abstractmethod
    def command(self) -> List[str]:
        """argv of the compression stage (reads stdin, writes stdout)."""

    def append_to(self, pipeline: Pipeline) -> PipelineStage:
        """Add this compressor's stage to ``pipeline``."""
        return pipeline.add(self.command())


class Gzip(Compressor):
    """gzip, optionally with a fixed level and --rsyncable."""

    def __init__(self, level: int | None = None, rsyncable: bool = False) -> None:
        self.level = _validate_level(level)
        self.rsyncable = rsyncable

    @property
    def extension(self) -> str:
        return ".gz"

    def command(self) -> List[str]:
        cmd = [utility("gzip")]
        if self.level is not None:
            cmd.append(f"-{self.level}")
        if self.rsyncable:
            cmd.append("--rsyncable")
        return cmd


class Bzip2(Compressor):
    """bzip2, optionally with a fixed block size level."""

    def __init__(self, level: int | None = None) -> None:
        self.level = _validate_level(level)

    @property
    def extension(self) -> str:
        return ".bz2"

    def command(self) -> List[str]:
        cmd = [utility("bzip2")]
        if self.level is not None:
            cmd.append(f"-{self.level}")
        return cmd


class Custom(Compressor):
    """
    Any filter command that compresses stdin to stdout.

    Example:
        Custom("xz -T0 -6", ".xz")
    """

    def __init__(self, command: str, extension: str) -> None:
        argv = shlex.split(command) if command else []
        if not argv:
            raise ConfigurationError("Custom compressor requires a command")
        if not extension:
            raise ConfigurationError("Custom compressor requires an extension")
        self._argv = argv
        self._extension = extension if extension.startswith(".") else f".{extension}"

    @property
    def extension(self) -> str:
        return self._extension

    def command(self) -> List[str]:
        return list(self._argv)
