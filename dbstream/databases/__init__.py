# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database adapters - store-specific backup protocols.
"""

from dbstream.databases.base import (
    AdapterPhase,
    AdapterRunState,
    BackupResult,
    DatabaseAdapter,
)

from dbstream.databases.elasticsearch import Elasticsearch

__all__ = [
    # Protocol
    "AdapterPhase",
    "AdapterRunState",
    "BackupResult",
    "DatabaseAdapter",
    # Adapters
    "Elasticsearch",
]
