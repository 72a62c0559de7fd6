# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Remote Control Tests for dbstream.

These tests verify the control call boundary:
1. Only status 200 is success
2. Transport failures and timeouts come back as results, never raise
3. Endpoints are scoped to the target; close is never built for the whole store
"""

import asyncio
import socket

import httpx
import pytest

from dbstream.config import ALL
from dbstream.exceptions import ConfigurationError, RemoteCallError
from dbstream.remote import RemoteControlClient, RemoteEndpoint


def _client(control_api, target="widgets", timeout=5.0) -> RemoteControlClient:
    endpoint = RemoteEndpoint(host="es.internal", port=9200, target=target)
    return RemoteControlClient(endpoint, timeout=timeout, transport=control_api.transport)


# ============================================================================
# Test 1: STATUS CLASSIFICATION
# ============================================================================

@pytest.mark.asyncio
async def test_post_with_status_200_succeeds(control_api):
    result = await _client(control_api).call("POST", "/widgets/_flush")

    assert result.ok is True
    assert result.status_code == 200
    assert result.error is None
    assert control_api.requests == [
        {"method": "POST", "path": "/widgets/_flush", "body": None, "content_type": None}
    ]


@pytest.mark.asyncio
async def test_put_sends_json_settings_body(control_api):
    body = {"index": {"translog.disable_flush": "true"}}

    result = await _client(control_api).call("PUT", "/widgets/_settings", body)

    assert result.ok
    request = control_api.requests[0]
    assert request["body"] == body
    assert request["content_type"] == "application/json"


@pytest.mark.asyncio
async def test_non_200_status_is_request_failure(control_api):
    control_api.respond("POST", "/widgets/_flush", 500, text='{"error":"shard failure"}')

    result = await _client(control_api).call("POST", "/widgets/_flush")

    assert result.ok is False
    assert result.transport_failure is False
    assert result.status_code == 500
    assert result.body == '{"error":"shard failure"}'

    error = result.to_error("flush the Elasticsearch index")
    assert isinstance(error, RemoteCallError)
    assert error.details == {
        "host": "es.internal",
        "port": 9200,
        "endpoint": "/widgets/_flush",
        "status_code": 500,
        "response_body": '{"error":"shard failure"}',
    }


@pytest.mark.asyncio
async def test_other_2xx_statuses_are_failures(control_api):
    control_api.respond("POST", "/widgets/_close", 201, text="created")

    result = await _client(control_api).call("POST", "/widgets/_close")

    assert result.ok is False
    assert result.status_code == 201


# ============================================================================
# Test 2: TRANSPORT FAILURES NEVER RAISE
# ============================================================================

@pytest.mark.asyncio
async def test_transport_error_becomes_failed_result(control_api):
    control_api.fail("POST", "/_flush", httpx.ConnectError("Connection refused"))

    result = await _client(control_api, target=ALL).call("POST", "/_flush")

    assert result.ok is False
    assert result.transport_failure is True
    assert "Connection refused" in result.error

    error = result.to_error("flush the Elasticsearch index")
    assert error.details["host"] == "es.internal"
    assert error.details["port"] == 9200
    assert error.details["endpoint"] == "/_flush"
    assert "Connection refused" in error.details["error"]


@pytest.mark.asyncio
async def test_call_exceeding_timeout_becomes_failed_result():
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    endpoint = RemoteEndpoint(host="es.internal", port=9200, target="widgets")
    client = RemoteControlClient(endpoint, timeout=0.05, transport=httpx.MockTransport(slow))

    result = await client.call("POST", "/widgets/_flush")

    assert result.ok is False
    assert "timed out" in result.error


@pytest.mark.asyncio
async def test_refused_connection_becomes_failed_result():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    client = RemoteControlClient(RemoteEndpoint(host="127.0.0.1", port=port), timeout=5.0)

    result = await client.call("POST", "/_flush")

    assert result.ok is False
    assert result.transport_failure is True
    assert result.port == port


def test_timeout_must_be_positive():
    with pytest.raises(ConfigurationError):
        RemoteControlClient(RemoteEndpoint(host="localhost", port=9200), timeout=0)


# ============================================================================
# Test 3: ENDPOINT TEMPLATES
# ============================================================================

@pytest.mark.parametrize("target", [ALL, "all", ":all", None, ""])
def test_entire_store_endpoints_are_unscoped(target):
    endpoint = RemoteEndpoint(host="localhost", port=9200, target=target)

    assert endpoint.is_entire_store
    assert endpoint.flush_path() == "/_flush"
    assert endpoint.settings_path() == "/_settings"
    with pytest.raises(ConfigurationError):
        endpoint.close_path()


def test_single_index_endpoints_are_scoped():
    endpoint = RemoteEndpoint(host="localhost", port=9200, target="widgets")

    assert not endpoint.is_entire_store
    assert endpoint.flush_path() == "/widgets/_flush"
    assert endpoint.settings_path() == "/widgets/_settings"
    assert endpoint.close_path() == "/widgets/_close"
    assert endpoint.base_url == "http://localhost:9200"


@pytest.mark.parametrize(
    "host, expected",
    [
        ("::1", "http://[::1]:9200"),
        ("[fe80::1]", "http://[fe80::1]:9200"),
        ("10.0.0.5", "http://10.0.0.5:9200"),
    ],
)
def test_base_url_brackets_ipv6_hosts(host, expected):
    assert RemoteEndpoint(host=host, port=9200).base_url == expected


@pytest.mark.asyncio
async def test_ipv6_host_reaches_control_api(control_api):
    endpoint = RemoteEndpoint(host="::1", port=9200, target="widgets")
    client = RemoteControlClient(endpoint, transport=control_api.transport)

    result = await client.call("POST", "/widgets/_flush")

    assert result.ok
    assert control_api.calls == [("POST", "/widgets/_flush")]
