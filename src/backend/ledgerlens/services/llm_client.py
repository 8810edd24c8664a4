"""
HTTP client for the remote LLM statement-parsing endpoint.

Request body:
    {"statementText": ..., "issuerHint": ..., "currencyHint": ..., "modelTier": ...}

Response body:
    {"success": bool, "data": {...}, "error": str, "meta": {...}}
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ledgerlens.config import settings

logger = logging.getLogger(__name__)

MODEL_TIERS = ('primary', 'retry', 'large')


class LLMParseError(Exception):
    """Raised when the parse endpoint cannot be reached or answers badly."""


class LLMParseClient:
    """Posts statement text to the LLM parse endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url if url is not None else settings.LLM_PARSE_URL
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"
        return headers

    async def parse_statement(
        self,
        statement_text: str,
        issuer_hint: Optional[str] = None,
        currency_hint: Optional[str] = None,
        model_tier: str = 'primary'
    ) -> Dict[str, Any]:
        """
        Send one parse request and return the decoded JSON body.

        Raises:
            LLMParseError: on transport errors, non-2xx status, or a body
                that is not a JSON object
        """
        if not self.configured:
            raise LLMParseError("LLM_PARSE_URL is not configured")
        if model_tier not in MODEL_TIERS:
            raise LLMParseError(f"Unknown model tier: {model_tier}")

        payload = {
            'statementText': statement_text,
            'issuerHint': issuer_hint,
            'currencyHint': currency_hint,
            'modelTier': model_tier,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise LLMParseError(f"Request failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise LLMParseError(f"Parse endpoint returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise LLMParseError("Parse endpoint returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise LLMParseError("Parse endpoint returned an unexpected body")

        logger.debug(
            "LLM parse response received",
            extra={"tier": model_tier, "success": body.get('success'), "chars": len(statement_text)}
        )
        return body
