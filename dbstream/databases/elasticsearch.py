# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Elasticsearch adapter - tars the node's index directory.

Optional control calls around the copy:

- invoke_flush:     POST /_flush or /<index>/_flush
- disable_flushing: PUT /_settings or /<index>/_settings with
                    {"index": {"translog.disable_flush": "true"}},
                    reverted with "false" after the copy
- invoke_close:     POST /<index>/_close, single index only

The artifact is written to

    <tmp>/<trigger>/databases/Elasticsearch[-<database_id>].tar[<ext>]
"""

from pathlib import Path

import httpx
import structlog

from dbstream.config import ElasticsearchConfig, JobConfig
from dbstream.databases.base import AdapterRunState, DatabaseAdapter
from dbstream.exceptions import NotFoundError, PipelineError
from dbstream.pipeline import Pipeline
from dbstream.remote import RemoteControlClient
from dbstream.utilities import utility

logger = structlog.get_logger()

# Index setting toggled by disable_flushing
FLUSH_SETTING = "translog.disable_flush"


class Elasticsearch(DatabaseAdapter):
    """Backs up one index, or every index, of an Elasticsearch node."""

    def __init__(
        self,
        job: JobConfig,
        config: ElasticsearchConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(job, database_id=config.database_id)
        self.config = config
        self.client = RemoteControlClient(
            config.endpoint,
            timeout=config.request_timeout,
            transport=transport,
        )

    @property
    def source_path(self) -> Path:
        """<path>/nodes/0/indices, narrowed to the index directory when set."""
        path = self.config.path / "nodes" / "0" / "indices"
        if not self.config.backup_all:
            path = path / str(self.config.index)
        return path

    @property
    def index_label(self) -> str:
        return "all" if self.config.backup_all else str(self.config.index)

    async def prepare(self, state: AdapterRunState) -> None:
        endpoint = self.client.endpoint

        if self.config.invoke_flush:
            await self.control(
                state, "POST", endpoint.flush_path(), "flush the Elasticsearch index"
            )

        if self.config.disable_flushing:
            await self._set_flush_disabled(state, True)
            state.defer("enable_flushing", lambda: self._set_flush_disabled(state, False))

        # Closing every index at once is destructive
        if self.config.invoke_close and not self.config.backup_all:
            await self.control(
                state, "POST", endpoint.close_path(), "close the Elasticsearch index"
            )

    async def _set_flush_disabled(self, state: AdapterRunState, disabled: bool) -> None:
        await self.control(
            state,
            "PUT",
            self.client.endpoint.settings_path(),
            "update flush settings of the Elasticsearch index",
            body={"index": {FLUSH_SETTING: "true" if disabled else "false"}},
        )

    async def copy(self, state: AdapterRunState) -> Path:
        src_path = self.source_path
        if not src_path.exists():
            raise NotFoundError(
                "Elasticsearch index directory not found",
                details={"path": str(src_path)},
            )

        pipeline = Pipeline()
        pipeline.add([utility("tar"), "-cf", "-", str(src_path)])

        extension = ".tar"
        compressor = self.job.compressor
        if compressor is not None:
            compressor.append_to(pipeline)
            extension += compressor.extension

        dst_path = self.dump_path / f"{self.dump_filename}{extension}"
        pipeline.add([utility("cat")], output_path=dst_path)

        logger.info(
            "elasticsearch_copy_started",
            attempt_id=state.attempt_id,
            index=self.index_label,
            source=str(src_path),
            destination=str(dst_path),
        )

        try:
            await pipeline.run()
        except BaseException:
            self._remove_partial(state, dst_path)
            raise

        if not pipeline.success:
            self._remove_partial(state, dst_path)
            raise PipelineError(
                f"Elasticsearch index '{self.index_label}' backup failed!\n"
                + pipeline.error_messages,
                details={"stages": pipeline.stage_details()},
            )

        return dst_path

    def _remove_partial(self, state: AdapterRunState, dst_path: Path) -> None:
        # A partial archive must never pass for a complete backup
        dst_path.unlink(missing_ok=True)
        logger.warning(
            "partial_artifact_removed",
            attempt_id=state.attempt_id,
            destination=str(dst_path),
        )
