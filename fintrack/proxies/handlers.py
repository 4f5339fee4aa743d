"""
AI Proxy Handlers

Stateless request/response handlers for the two AI endpoints:

- finance assistant:  {message, transactions}  ->  {response} | {error}
- receipt scan:       {imageBase64}            ->  {data} | {error[, rawText]}

They take the already-decoded JSON body and return a ProxyResponse, so
any HTTP layer (serverless function, ASGI app, test) can host them.

CRITICAL: A handler NEVER raises. Every failure, including an upstream
error or an unparseable model reply, becomes a structured error body
with a non-2xx status.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fintrack.agents.ai_agents import (
    FinanceAssistantAgent,
    InvalidImageError,
    ReceiptParseError,
    ReceiptScanAgent,
)
from fintrack.audit import AuditLogger, get_logger


logger = get_logger(__name__)


class ProxyResponse(BaseModel):
    """Status code plus JSON body."""

    status_code: int = 200
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ChatRequest(BaseModel):
    """Body of a finance assistant request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(..., min_length=1)
    transactions: list[dict[str, Any]] = Field(default_factory=list)


class ReceiptScanRequest(BaseModel):
    """Body of a receipt scan request. The wire name is camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., min_length=1, alias="imageBase64")


def _error(status_code: int, message: str, **extra) -> ProxyResponse:
    return ProxyResponse(status_code=status_code, body={"error": message, **extra})


class FinanceAssistantProxy:
    """Forwards a chat message plus the user's transactions to the assistant."""

    def __init__(
        self,
        agent: Optional[FinanceAssistantAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger

    def _get_agent(self) -> FinanceAssistantAgent:
        # Built on first use so a missing API key surfaces as a 500, not at import
        if self._agent is None:
            self._agent = FinanceAssistantAgent()
        return self._agent

    async def handle(self, payload: Any) -> ProxyResponse:
        try:
            request = ChatRequest.model_validate(payload)
        except ValidationError:
            return _error(400, "A non-empty message is required")

        try:
            answer = await self._get_agent().answer(request.message, request.transactions)
        except Exception as e:
            logger.error("finance_assistant_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="finance-assistant",
                    error_message=str(e),
                )
            return _error(500, str(e))

        if self._audit_logger:
            await self._audit_logger.log_assistant_answered(
                message_length=len(request.message),
                transaction_count=len(request.transactions),
            )
        return ProxyResponse(body={"response": answer})


class ScanReceiptProxy:
    """Forwards a receipt photo to the scanner and relays the extracted fields."""

    def __init__(
        self,
        agent: Optional[ReceiptScanAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger

    def _get_agent(self) -> ReceiptScanAgent:
        if self._agent is None:
            self._agent = ReceiptScanAgent()
        return self._agent

    async def handle(self, payload: Any) -> ProxyResponse:
        try:
            request = ReceiptScanRequest.model_validate(payload)
        except ValidationError:
            return _error(400, "No image provided")

        try:
            receipt = await self._get_agent().scan(request.image_base64)
        except InvalidImageError as e:
            return _error(400, str(e))
        except ReceiptParseError as e:
            logger.warning("receipt_parse_failed", raw_text=e.raw_text[:500])
            if self._audit_logger:
                await self._audit_logger.log_receipt_parse_failed(raw_text=e.raw_text)
            return _error(422, str(e), rawText=e.raw_text)
        except Exception as e:
            logger.error("scan_receipt_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="scan-receipt",
                    error_message=str(e),
                )
            return _error(500, str(e))

        if self._audit_logger:
            await self._audit_logger.log_receipt_scanned(
                merchant=receipt.merchant,
                amount=receipt.amount,
            )
        return ProxyResponse(body={"data": receipt.model_dump()})

