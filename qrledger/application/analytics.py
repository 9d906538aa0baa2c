"""Natural-language spending questions forwarded to the workflow service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal

from qrledger.application.receipts.dispatch import InvoiceReader
from qrledger.runtime import get_logger
from qrledger.runtime.invoice_store import StorageError
from qrledger.runtime.workflow_client import WorkflowService, WorkflowServiceError

logger = get_logger(__name__)

QUESTION_REQUIRED = "Question is required."

AnswerStatus = Literal["answered", "question_required", "failed"]


@dataclass(frozen=True)
class AnalyticsAnswer:
    answer: str
    status: AnswerStatus = "answered"


class AnalyticsForwarder:
    """
    Stateless proxy: every stored item plus the question go to the workflow.

    Failures never raise; they come back as an answer string so callers
    always get an answer-shaped result.
    """

    def __init__(self, reader: InvoiceReader, workflow: WorkflowService) -> None:
        self._reader = reader
        self._workflow = workflow

    async def ask(self, question: str | None) -> AnalyticsAnswer:
        if question is None or not question.strip():
            return AnalyticsAnswer(answer=QUESTION_REQUIRED, status="question_required")

        logger.info("Received analytics question (%d chars)", len(question))
        try:
            stored = await asyncio.to_thread(self._reader.list_items)
            items = [item.to_payload(include_invoice_id=False) for item in stored]
            logger.debug("Forwarding %d items with question", len(items))
            answer = await self._workflow.answer_question(question, items)
        except (WorkflowServiceError, StorageError) as e:
            logger.error("Analytics request failed: %s", e)
            return AnalyticsAnswer(answer=f"Error: {e}", status="failed")

        return AnalyticsAnswer(answer=answer)
