# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream Exceptions - Custom exceptions for the dbstream package.
"""


class DBStreamError(Exception):
    """Base exception for all dbstream errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DBStreamError):
    """Raised when configuration is invalid or a builder is misused."""

    pass


class UtilityNotFoundError(ConfigurationError):
    """Raised when a required external program cannot be located."""

    pass


class RemoteCallError(DBStreamError):
    """Raised when a control call to a store's administrative API fails."""

    pass


class NotFoundError(DBStreamError):
    """Raised when the data directory to back up does not exist."""

    pass


class PipelineError(DBStreamError):
    """Raised when one or more stages of a streaming copy fail."""

    pass
