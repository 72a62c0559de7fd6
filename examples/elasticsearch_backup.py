# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example: back up an Elasticsearch node from a cron job.

Run with:
    python examples/elasticsearch_backup.py

Environment variables:
    DBSTREAM_TRIGGER: Job name, e.g. "nightly"
    DBSTREAM_TMP_PATH: Where the artifact is written
    DBSTREAM_COMPRESSOR: gzip | bzip2 | none
    DBSTREAM_ES_PATH: path.data from elasticsearch.yml
    DBSTREAM_ES_INDEX: Index to back up (default: every index)
    DBSTREAM_ES_DISABLE_FLUSHING: Disable translog flushing while copying
"""

import asyncio
import sys

import structlog

from dbstream import (
    Elasticsearch,
    create_elasticsearch_config_from_env,
    create_job_config_from_env,
)
from dbstream.exceptions import DBStreamError

logger = structlog.get_logger()


async def main() -> int:
    job = create_job_config_from_env()
    config = create_elasticsearch_config_from_env()

    adapter = Elasticsearch(job, config)

    try:
        result = await adapter.perform()
    except DBStreamError as e:
        logger.error("backup_failed", error=str(e))
        return 1

    logger.info(
        "backup_complete",
        artifact=str(result.artifact_path),
        size_bytes=result.artifact.size_bytes,
        sha256=result.artifact.sha256,
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
