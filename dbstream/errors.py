# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for dbstream.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_trigger_env() -> str:
    """
    Explain that the job trigger environment variable is missing.
    """

    return (
        "Backup job trigger is not configured. "
        "Set the DBSTREAM_TRIGGER environment variable or pass trigger=... to JobConfig()."
    )


def explain_missing_data_path_env() -> str:
    """
    Explain that the Elasticsearch data path is missing.
    """

    return (
        "Elasticsearch data path is not configured. "
        "dbstream cannot guess where the node keeps its indices. "
        "Set DBSTREAM_ES_PATH to the 'path.data' value from elasticsearch.yml."
    )


def explain_invalid_port_env(value: str | None) -> str:
    """
    Explain that DBSTREAM_ES_PORT is invalid.
    """

    return (
        f"Invalid DBSTREAM_ES_PORT value: {value!r}. "
        "It must be an integer between 1 and 65535."
    )


def explain_invalid_timeout_env(value: str | None) -> str:
    """
    Explain that DBSTREAM_ES_TIMEOUT is invalid.
    """

    return (
        f"Invalid DBSTREAM_ES_TIMEOUT value: {value!r}. "
        "It must be a positive number of seconds."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean environment variable could not be parsed.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: '1', 'true', 'yes', 'on', '0', 'false', 'no', 'off'."
    )


def explain_invalid_compressor_env(value: str | None) -> str:
    """
    Explain that DBSTREAM_COMPRESSOR is invalid.
    """

    return (
        f"Invalid DBSTREAM_COMPRESSOR value: {value!r}. "
        "Expected 'gzip', 'bzip2', or 'none'."
    )


def explain_missing_utility(name: str) -> str:
    """
    Explain that an external program could not be found on PATH.
    """

    return (
        f"Could not locate the '{name}' utility on PATH. "
        f"Install it, or pass {name}='/full/path/to/{name}' to configure_utilities()."
    )
