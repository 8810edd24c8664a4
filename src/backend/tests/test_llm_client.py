"""
Tests for the LLM parse endpoint client, using httpx.MockTransport.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio
import json

import httpx
import pytest

from ledgerlens.services.llm_client import LLMParseClient, LLMParseError

URL = "https://llm.example.test/parse"


def make_client(handler, api_key="secret"):
    return LLMParseClient(url=URL, api_key=api_key, timeout=5, transport=httpx.MockTransport(handler))


class TestLLMParseClient:
    """Test request shape and error mapping."""

    def test_posts_payload_and_returns_body(self):
        seen = {}

        def handler(request):
            seen['body'] = json.loads(request.content)
            seen['auth'] = request.headers.get('Authorization')
            return httpx.Response(200, json={'success': True, 'data': {'transactions': []}})

        body = asyncio.run(make_client(handler).parse_statement(
            "statement", issuer_hint='HDFC', currency_hint='INR', model_tier='large'
        ))

        assert body['success'] is True
        assert seen['body'] == {
            'statementText': 'statement',
            'issuerHint': 'HDFC',
            'currencyHint': 'INR',
            'modelTier': 'large',
        }
        assert seen['auth'] == 'Bearer secret'

    def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen['auth'] = request.headers.get('Authorization')
            return httpx.Response(200, json={'success': True})

        asyncio.run(make_client(handler, api_key="").parse_statement("statement"))
        assert seen['auth'] is None

    def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(LLMParseError, match="HTTP 503"):
            asyncio.run(client.parse_statement("statement"))

    def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(LLMParseError, match="non-JSON"):
            asyncio.run(client.parse_statement("statement"))

    def test_non_object_body(self):
        client = make_client(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(LLMParseError, match="unexpected body"):
            asyncio.run(client.parse_statement("statement"))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LLMParseError, match="Request failed"):
            asyncio.run(make_client(handler).parse_statement("statement"))

    def test_malformed_url(self):
        """A URL httpx cannot parse is reported like any other request failure."""
        client = LLMParseClient(
            url="https://llm.example.test/\x00parse",
            timeout=5,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )
        with pytest.raises(LLMParseError, match="Request failed"):
            asyncio.run(client.parse_statement("statement"))

    def test_unconfigured(self):
        client = LLMParseClient(url="")
        assert client.configured is False
        with pytest.raises(LLMParseError, match="not configured"):
            asyncio.run(client.parse_statement("statement"))

    def test_unknown_tier(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(LLMParseError, match="Unknown model tier"):
            asyncio.run(client.parse_statement("statement", model_tier='huge'))
