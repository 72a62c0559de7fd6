# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for dbstream tests.

Provides a fake Elasticsearch control API, an on-disk Elasticsearch data
directory, and job configuration helpers.
"""

import json
import tarfile
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Tuple

import httpx
import pytest

from dbstream.config import JobConfig
from dbstream.utilities import reset_utilities


class FakeControlAPI:
    """
    In-memory stand-in for an Elasticsearch node's REST API.

    Every request is recorded. Responses default to 200; rules added with
    respond() or fail() override that for matching requests.
    """

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self._rules: List[Tuple[str, str, Any, Any]] = []

    def respond(
        self,
        method: str,
        path: str,
        status: int,
        text: str = '{"error":"simulated"}',
        when: Any = None,
    ) -> None:
        """Answer matching requests with ``status``; ``when`` matches the JSON body."""
        self._rules.append((method, path, when, httpx.Response(status, text=text)))

    def fail(self, method: str, path: str, error: Exception, when: Any = None) -> None:
        """Raise ``error`` (a transport failure) for matching requests."""
        self._rules.append((method, path, when, error))

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append(
            {
                "method": request.method,
                "path": request.url.path,
                "body": body,
                "content_type": request.headers.get("content-type"),
            }
        )

        for method, path, when, outcome in self._rules:
            if method != request.method or path != request.url.path:
                continue
            if when is not None and when != body:
                continue
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome.status_code, text=outcome.text)

        return httpx.Response(200, text='{"acknowledged":true}')

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def calls(self) -> List[Tuple[str, str]]:
        return [(r["method"], r["path"]) for r in self.requests]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [r["body"] for r in self.requests if (r["method"], r["path"]) == (method, path)]


@pytest.fixture(autouse=True)
def _reset_utilities() -> Generator[None, None, None]:
    yield
    reset_utilities()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def control_api() -> FakeControlAPI:
    return FakeControlAPI()


@pytest.fixture
def es_data(temp_dir: Path) -> Path:
    """
    Create an Elasticsearch data directory with two indices.

    Layout: <root>/nodes/0/indices/{widgets,gadgets}/...
    """
    root = temp_dir / "es-data"
    indices = root / "nodes" / "0" / "indices"

    files = {
        "widgets/_state/state-1.st": b"widgets state",
        "widgets/0/index/segments_1": b"\x00\x01widget segment\xff" * 64,
        "widgets/0/translog/translog-1.tlog": b"translog entry\n" * 32,
        "gadgets/_state/state-3.st": b"gadgets state",
        "gadgets/0/index/_0.cfs": bytes(range(256)) * 16,
    }
    for relative, content in files.items():
        path = indices / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    return root


@pytest.fixture
def job(temp_dir: Path) -> JobConfig:
    """Create a job writing under a temporary directory."""
    return JobConfig(trigger="my_backup", tmp_path=temp_dir / "tmp")


def tree_contents(root: Path) -> Dict[str, bytes]:
    """Map every file under ``root`` (relative path) to its bytes."""
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def tar_contents(archive: Path, anchor: str = "nodes/0/indices/") -> Dict[str, bytes]:
    """
    Map every file in a (possibly compressed) tar to its bytes.

    Member names are cut down to the part after ``anchor`` since tar
    stores the absolute source path without its leading slash.
    """
    contents: Dict[str, bytes] = {}
    with tarfile.open(archive, "r:*") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            name = member.name.split(anchor, 1)[-1]
            extracted = tar.extractfile(member)
            assert extracted is not None
            contents[name] = extracted.read()
    return contents
