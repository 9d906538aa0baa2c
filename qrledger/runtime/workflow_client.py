"""HTTP client for the external workflow service (n8n webhooks).

Two operations:
    process_receipt(qr_url, items) -> structured invoice payload (opaque)
    answer_question(question, items) -> answer text
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from qrledger.runtime.config import AppConfig
from qrledger.runtime.logging import get_logger

logger = get_logger(__name__)

NO_ANSWER = "No answer received from analytics service."


class WorkflowServiceError(RuntimeError):
    """Raised when the workflow service cannot be reached or returns an unusable response."""


class WorkflowService(Protocol):
    """Capability interface for the external workflow engine."""

    async def process_receipt(self, qr_url: str, items: Sequence[dict[str, Any]]) -> Any: ...

    async def answer_question(self, question: str, items: Sequence[dict[str, Any]]) -> str: ...


def extract_answer(data: Any) -> str:
    """Take ``output`` from the first element of an analytics response, or NO_ANSWER."""
    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict):
            output = first.get("output")
            if output:
                return str(output)
    return NO_ANSWER


class WorkflowClient:
    """
    POST JSON payloads to the configured webhooks with httpx.

    No retries: dispatches are user-triggered, and the user re-scans on failure.
    """

    def __init__(
        self,
        receipt_webhook_url: str | None,
        analytics_webhook_url: str | None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.receipt_webhook_url = receipt_webhook_url
        self.analytics_webhook_url = analytics_webhook_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: AppConfig) -> WorkflowClient:
        return cls(
            receipt_webhook_url=config.receipt_webhook_url,
            analytics_webhook_url=config.analytics_webhook_url,
            timeout=config.webhook_timeout,
        )

    async def _post_json(self, url: str | None, payload: dict[str, Any], purpose: str) -> Any:
        if not url:
            raise WorkflowServiceError(f"{purpose} webhook URL is not configured")

        logger.info("Calling %s webhook with %d items", purpose, len(payload.get("items", [])))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("%s webhook unavailable: %s", purpose, e)
            raise WorkflowServiceError(f"{purpose} webhook unavailable: {e}") from e

        logger.info("%s webhook responded with status %s", purpose, response.status_code)
        if not response.is_success:
            raise WorkflowServiceError(f"{purpose} webhook responded with status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise WorkflowServiceError(f"{purpose} webhook returned malformed JSON: {e}") from e

    async def process_receipt(self, qr_url: str, items: Sequence[dict[str, Any]]) -> Any:
        return await self._post_json(
            self.receipt_webhook_url,
            {"qrUrl": qr_url, "items": list(items)},
            "Receipt",
        )

    async def answer_question(self, question: str, items: Sequence[dict[str, Any]]) -> str:
        data = await self._post_json(
            self.analytics_webhook_url,
            {"question": question, "items": list(items)},
            "Analytics",
        )
        return extract_answer(data)
