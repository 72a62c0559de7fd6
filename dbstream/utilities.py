# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
External utility resolution.

Pipelines are built from absolute program paths. A path configured with
configure_utilities() wins; otherwise the program is looked up on PATH.
"""

import shutil
from typing import Dict

import structlog

from dbstream.errors import explain_missing_utility
from dbstream.exceptions import ConfigurationError, UtilityNotFoundError

logger = structlog.get_logger()

# Programs a pipeline may be built from
UTILITY_NAMES = frozenset({"tar", "cat", "gzip", "bzip2"})

_configured: Dict[str, str] = {}


def configure_utilities(**paths: str) -> None:
    """
    Pin utilities to explicit paths.

    Example:
        configure_utilities(tar="/usr/local/bin/gtar")
    """
    for name, path in paths.items():
        if name not in UTILITY_NAMES:
            raise ConfigurationError(
                f"Unknown utility: {name}",
                details={"known": sorted(UTILITY_NAMES)},
            )
        if not path:
            raise ConfigurationError(f"Empty path configured for utility: {name}")
        _configured[name] = path


def reset_utilities() -> None:
    """Forget every configured utility path."""
    _configured.clear()


def utility(name: str) -> str:
    """
    Return the path of an external utility.

    Raises:
        UtilityNotFoundError: The utility is unknown or not installed
    """
    if name not in UTILITY_NAMES:
        raise UtilityNotFoundError(
            f"Unknown utility: {name}",
            details={"known": sorted(UTILITY_NAMES)},
        )

    if name in _configured:
        return _configured[name]

    path = shutil.which(name)
    if path is None:
        logger.error("utility_not_found", utility=name)
        raise UtilityNotFoundError(explain_missing_utility(name))

    return path
