# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers read a small set of well-known environment variables and
build the frozen configuration objects from them.
"""

from __future__ import annotations

import os
from pathlib import Path

from dbstream.compressors import Bzip2, Compressor, Gzip
from dbstream.config import ALL, DEFAULT_REQUEST_TIMEOUT, ElasticsearchConfig, JobConfig
from dbstream.errors import (
    explain_invalid_bool_env,
    explain_invalid_compressor_env,
    explain_invalid_port_env,
    explain_invalid_timeout_env,
    explain_missing_data_path_env,
    explain_missing_trigger_env,
)
from dbstream.exceptions import ConfigurationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _parse_bool(name: str, value: str | None) -> bool:
    if not value:
        return False
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_port(value: str | None) -> int:
    if not value:
        return 9200
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_port_env(value)) from exc
    if not 1 <= port <= 65535:
        raise ConfigurationError(explain_invalid_port_env(value))
    return port


def _parse_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_REQUEST_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_timeout_env(value)) from exc
    if timeout <= 0:
        raise ConfigurationError(explain_invalid_timeout_env(value))
    return timeout


def _parse_compressor(value: str | None) -> Compressor | None:
    if not value or value.lower() == "none":
        return None
    if value.lower() == "gzip":
        return Gzip()
    if value.lower() == "bzip2":
        return Bzip2()
    raise ConfigurationError(explain_invalid_compressor_env(value))


def create_job_config_from_env() -> JobConfig:
    """
    Create a JobConfig from environment variables.

    Required:
        - DBSTREAM_TRIGGER: Job name

    Optional:
        - DBSTREAM_TMP_PATH: Working directory (default: ./dbstream_tmp)
        - DBSTREAM_COMPRESSOR: 'gzip' | 'bzip2' | 'none' (default: none)
    """

    trigger = os.getenv("DBSTREAM_TRIGGER")
    if not trigger:
        raise ConfigurationError(explain_missing_trigger_env())

    tmp_path_env = os.getenv("DBSTREAM_TMP_PATH")
    tmp_path = Path(tmp_path_env) if tmp_path_env else Path("./dbstream_tmp")

    return JobConfig(
        trigger=trigger,
        tmp_path=tmp_path,
        compressor=_parse_compressor(os.getenv("DBSTREAM_COMPRESSOR")),
    )


def create_elasticsearch_config_from_env() -> ElasticsearchConfig:
    """
    Create an ElasticsearchConfig from environment variables.

    Required:
        - DBSTREAM_ES_PATH: Node data directory (path.data)

    Optional:
        - DBSTREAM_ES_INDEX: Index name, or 'all' (default: all)
        - DBSTREAM_ES_HOST / DBSTREAM_ES_PORT: Control API (default: localhost:9200)
        - DBSTREAM_ES_INVOKE_FLUSH: Flush before copying
        - DBSTREAM_ES_DISABLE_FLUSHING: Disable translog flushing while copying
        - DBSTREAM_ES_INVOKE_CLOSE: Close the index before copying
        - DBSTREAM_ES_TIMEOUT: Control call timeout in seconds (default: 180)
        - DBSTREAM_ES_ID: Database ID used in the artifact name
    """

    path = os.getenv("DBSTREAM_ES_PATH")
    if not path:
        raise ConfigurationError(explain_missing_data_path_env())

    return ElasticsearchConfig(
        path=Path(path),
        index=os.getenv("DBSTREAM_ES_INDEX") or ALL,
        invoke_flush=_parse_bool(
            "DBSTREAM_ES_INVOKE_FLUSH", os.getenv("DBSTREAM_ES_INVOKE_FLUSH")
        ),
        disable_flushing=_parse_bool(
            "DBSTREAM_ES_DISABLE_FLUSHING", os.getenv("DBSTREAM_ES_DISABLE_FLUSHING")
        ),
        invoke_close=_parse_bool(
            "DBSTREAM_ES_INVOKE_CLOSE", os.getenv("DBSTREAM_ES_INVOKE_CLOSE")
        ),
        host=os.getenv("DBSTREAM_ES_HOST", "localhost"),
        port=_parse_port(os.getenv("DBSTREAM_ES_PORT")),
        database_id=os.getenv("DBSTREAM_ES_ID"),
        request_timeout=_parse_timeout(os.getenv("DBSTREAM_ES_TIMEOUT")),
    )
