# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DBStream Remote Control - Bounded control calls against a store's admin API.

Each call is attempted exactly once and bounded by a fixed timeout.
Transport failures and unexpected statuses are returned as a failed
ControlCallResult rather than raised; callers decide whether a failure
aborts the backup.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from dbstream.config import ALL, DEFAULT_REQUEST_TIMEOUT, IndexScope, is_entire_store
from dbstream.exceptions import ConfigurationError, RemoteCallError

logger = structlog.get_logger()

# The only status treated as success
SUCCESS_STATUS = 200


@dataclass(frozen=True)
class RemoteEndpoint:
    """Administrative API location plus the backup target it acts on."""

    host: str
    port: int
    target: str | IndexScope | None = ALL

    @property
    def is_entire_store(self) -> bool:
        return is_entire_store(self.target)

    @property
    def base_url(self) -> str:
        host = self.host
        # IPv6 literals must be bracketed in URLs
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    def _scoped(self, action: str) -> str:
        if self.is_entire_store:
            return f"/{action}"
        return f"/{self.target}/{action}"

    def settings_path(self) -> str:
        return self._scoped("_settings")

    def flush_path(self) -> str:
        return self._scoped("_flush")

    def close_path(self) -> str:
        """Closing is only defined for a single named index."""
        if self.is_entire_store:
            raise ConfigurationError(
                "Refusing to build a close endpoint for the entire store",
                details={"host": self.host, "port": self.port},
            )
        return f"/{self.target}/_close"


@dataclass(frozen=True)
class ControlCallResult:
    """
    Outcome of one control call.

    Exactly one of ``error`` (transport failure) or ``status_code`` is set.
    """

    method: str
    host: str
    port: int
    endpoint: str
    status_code: int | None = None
    body: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code == SUCCESS_STATUS

    @property
    def transport_failure(self) -> bool:
        return self.error is not None

    def to_error(self, action: str) -> RemoteCallError:
        """
        Build the RemoteCallError describing this failed call.

        Args:
            action: What the call was for, e.g. "flush the Elasticsearch index"
        """
        details: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "endpoint": self.endpoint,
        }
        if self.error is not None:
            details["error"] = self.error
            message = f"Could not {action}: the control API could not be queried"
        else:
            details["status_code"] = self.status_code
            details["response_body"] = self.body
            message = f"Could not {action}: the control API returned status {self.status_code}"
        return RemoteCallError(message, details=details)


class RemoteControlClient:
    """
    Issues control requests against one RemoteEndpoint.

    A fresh HTTP client is opened per call. ``transport`` lets tests
    substitute an httpx.MockTransport.
    """

    def __init__(
        self,
        endpoint: RemoteEndpoint,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {timeout}")
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    async def call(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> ControlCallResult:
        """
        Issue one control request.

        Never raises for timeouts, transport errors or bad statuses.

        Args:
            method: HTTP method ("POST" or "PUT")
            path: Endpoint path, e.g. "/widgets/_flush"
            body: JSON body, sent with Content-Type application/json

        Returns:
            ControlCallResult describing the outcome
        """
        method = method.upper()
        base = {
            "method": method,
            "host": self.endpoint.host,
            "port": self.endpoint.port,
            "endpoint": path,
        }

        try:
            response = await asyncio.wait_for(
                self._send(method, path, body),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            result = ControlCallResult(**base, error=f"timed out after {self.timeout:g} seconds")
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            result = ControlCallResult(**base, error=str(e) or type(e).__name__)
        else:
            result = ControlCallResult(
                **base,
                status_code=response.status_code,
                body=response.text,
            )

        if result.ok:
            logger.info("control_call_succeeded", **base, status_code=result.status_code)
        else:
            logger.warning(
                "control_call_failed",
                **base,
                status_code=result.status_code,
                response_body=result.body,
                error=result.error,
            )

        return result

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.endpoint.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            return await client.request(method, path, json=body)
