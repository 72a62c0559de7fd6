# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream - Coordinated streaming backups of live data stores.

Places a store into a safe state through its control API, streams its
on-disk data through external archive and compression utilities into a
single artifact, and restores the store's normal state whether or not the
copy succeeded. Package name: dbstream.
"""

__version__ = "0.1.0"

# Configuration
from dbstream.config import ALL, ElasticsearchConfig, JobConfig

# Environment-based configuration (additional helpers)
from dbstream.env import (
    create_elasticsearch_config_from_env,
    create_job_config_from_env,
)

# Streaming engine
from dbstream.pipeline import Pipeline, PipelineStage

# Control API client
from dbstream.remote import ControlCallResult, RemoteControlClient, RemoteEndpoint

# Compressors
from dbstream.compressors import Bzip2, Compressor, Custom, Gzip

# Adapters
from dbstream.databases import BackupResult, DatabaseAdapter, Elasticsearch

__all__ = [
    # Version
    "__version__",
    # Configuration
    "ALL",
    "ElasticsearchConfig",
    "JobConfig",
    "create_elasticsearch_config_from_env",
    "create_job_config_from_env",
    # Engine
    "Pipeline",
    "PipelineStage",
    "ControlCallResult",
    "RemoteControlClient",
    "RemoteEndpoint",
    # Compressors
    "Compressor",
    "Gzip",
    "Bzip2",
    "Custom",
    # Adapters
    "BackupResult",
    "DatabaseAdapter",
    "Elasticsearch",
]
