# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact description - size and checksum of a finished backup file.

The file is streamed in fixed-size chunks so that describing a multi-GB
artifact does not load it into memory.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from dbstream.exceptions import NotFoundError

# Read size used while hashing
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArtifactInfo:
    """A finished artifact on disk."""

    path: Path
    size_bytes: int
    sha256: str


async def describe_artifact(path: Path) -> ArtifactInfo:
    """
    Compute the size and SHA-256 of an artifact.

    Args:
        path: Path to the artifact

    Returns:
        ArtifactInfo for the file
    """
    digest = hashlib.sha256()
    size = 0

    try:
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
                size += len(chunk)
    except FileNotFoundError:
        raise NotFoundError(
            f"Backup artifact not found: {path}",
            details={"path": str(path)},
        )

    return ArtifactInfo(path=Path(path), size_bytes=size, sha256=digest.hexdigest())
