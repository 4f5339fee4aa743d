"""
Tests for the Gemini agents and the proxy handlers.

A fake model object replaces genai.GenerativeModel, so nothing here
reaches the network.
"""

import asyncio
import base64
import json
from io import BytesIO

import pytest
from PIL import Image

from fintrack.agents import (
    AIServiceError,
    FinanceAssistantAgent,
    InvalidImageError,
    ReceiptParseError,
    ReceiptScanAgent,
    extract_json_object,
)
from fintrack.agents.ai_agents import detect_image_mime_type
from fintrack.audit import AuditLogger
from fintrack.config import GeminiSettings
from fintrack.models import AuditEventType
from fintrack.proxies import FinanceAssistantProxy, ScanReceiptProxy
from fintrack.services.storage import InMemoryAuditStorage


def _png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), "white").save(buffer, format="PNG")
    return buffer.getvalue()


PNG_BASE64 = base64.b64encode(_png_bytes()).decode()

RECEIPT_REPLY = """```json
{
  "merchant": "Corner Market",
  "amount": "23.40",
  "date": "2024-03-02",
  "items": ["Milk", "Bread"],
  "category": "Food & Dining"
}
```"""


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-key", max_retries=1)


@pytest.fixture
def audit():
    storage = InMemoryAuditStorage()
    return AuditLogger(storage), storage


class TestExtractJsonObject:

    def test_strips_surrounding_prose(self):
        assert extract_json_object('Here you go: {"a": 1} hope it helps') == {"a": 1}

    def test_no_object_raises(self):
        with pytest.raises(ValueError):
            extract_json_object("no json here")

    def test_malformed_object_raises(self):
        with pytest.raises(ValueError):
            extract_json_object("{merchant: Corner Market}")


class TestDetectImageMimeType:

    def test_png(self):
        assert detect_image_mime_type(_png_bytes()) == "image/png"

    def test_unknown_bytes_default_to_jpeg(self):
        assert detect_image_mime_type(b"hello") == "image/jpeg"


class TestFinanceAssistantAgent:
    """Tests for the chat assistant."""

    def test_prompt_embeds_every_transaction(self):
        transactions = [{"id": str(i), "amount": i} for i in range(500)]
        prompt = FinanceAssistantAgent.build_prompt("How am I doing?", transactions)

        assert json.dumps(transactions) in prompt
        assert prompt.endswith("User: How am I doing?")

    def test_answer_returns_model_text(self, gemini_settings, fake_model):
        model = fake_model("  You spent less this month.  ")
        agent = FinanceAssistantAgent(settings=gemini_settings, model=model)

        answer = asyncio.run(agent.answer("Summary?", []))

        assert answer == "You spent less this month."
        assert len(model.calls) == 1

    def test_upstream_failure_is_ai_service_error(self, gemini_settings, fake_model):
        agent = FinanceAssistantAgent(settings=gemini_settings, model=fake_model(RuntimeError("503")))
        with pytest.raises(AIServiceError):
            asyncio.run(agent.answer("Summary?", []))

    def test_empty_reply_is_ai_service_error(self, gemini_settings, fake_model):
        agent = FinanceAssistantAgent(settings=gemini_settings, model=fake_model("   "))
        with pytest.raises(AIServiceError):
            asyncio.run(agent.answer("Summary?", []))

    def test_transient_failure_is_retried(self, fake_model):
        settings = GeminiSettings(api_key="test-key", max_retries=2)
        model = fake_model(RuntimeError("503"), "Recovered")
        agent = FinanceAssistantAgent(settings=settings, model=model)

        assert asyncio.run(agent.answer("Summary?", [])) == "Recovered"
        assert len(model.calls) == 2


class TestReceiptScanAgent:
    """Tests for the receipt scanner."""

    def test_scan_parses_fenced_json(self, gemini_settings, fake_model):
        model = fake_model(RECEIPT_REPLY)
        agent = ReceiptScanAgent(settings=gemini_settings, model=model)

        receipt = asyncio.run(agent.scan(PNG_BASE64))

        assert receipt.merchant == "Corner Market"
        assert receipt.amount == 23.4
        assert receipt.items == ["Milk", "Bread"]
        assert model.calls[0][1]["mime_type"] == "image/png"

    def test_scan_accepts_data_url(self, gemini_settings, fake_model):
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(RECEIPT_REPLY))
        receipt = asyncio.run(agent.scan(f"data:image/png;base64,{PNG_BASE64}"))
        assert receipt.date == "2024-03-02"

    def test_invalid_base64(self):
        with pytest.raises(InvalidImageError):
            ReceiptScanAgent.decode_image("not base64!!")

    def test_unparseable_reply_keeps_raw_text(self, gemini_settings, fake_model):
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model("I can't read this receipt."))
        with pytest.raises(ReceiptParseError) as exc_info:
            asyncio.run(agent.scan(PNG_BASE64))
        assert exc_info.value.raw_text == "I can't read this receipt."

    def test_single_item_string_is_one_item(self, gemini_settings, fake_model):
        reply = '{"merchant": "Cafe", "amount": 4, "items": "Coffee", "category": "Food & Dining"}'
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(reply))
        receipt = asyncio.run(agent.scan(PNG_BASE64))
        assert receipt.items == ["Coffee"]

    def test_non_list_items_keep_raw_text(self, gemini_settings, fake_model):
        reply = '{"merchant": "Cafe", "amount": 4, "items": 5}'
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(reply))
        with pytest.raises(ReceiptParseError) as exc_info:
            asyncio.run(agent.scan(PNG_BASE64))
        assert exc_info.value.raw_text == reply


class TestFinanceAssistantProxy:
    """Tests for the chat proxy's status codes."""

    def test_success(self, gemini_settings, fake_model, audit):
        audit_logger, storage = audit
        agent = FinanceAssistantAgent(settings=gemini_settings, model=fake_model("Looks good"))
        proxy = FinanceAssistantProxy(agent=agent, audit_logger=audit_logger)

        response = asyncio.run(proxy.handle({"message": "Hi", "transactions": [{"amount": 1}]}))

        assert response.status_code == 200
        assert response.body == {"response": "Looks good"}
        assert storage.events[-1].event_type == AuditEventType.ASSISTANT_ANSWERED

    @pytest.mark.parametrize("payload", [None, {}, {"message": ""}, {"message": "   "}])
    def test_missing_message_is_400(self, payload, gemini_settings, fake_model):
        agent = FinanceAssistantAgent(settings=gemini_settings, model=fake_model("unused"))
        response = asyncio.run(FinanceAssistantProxy(agent=agent).handle(payload))
        assert response.status_code == 400
        assert "error" in response.body

    def test_upstream_failure_is_500(self, gemini_settings, fake_model, audit):
        audit_logger, storage = audit
        agent = FinanceAssistantAgent(settings=gemini_settings, model=fake_model(RuntimeError("down")))
        proxy = FinanceAssistantProxy(agent=agent, audit_logger=audit_logger)

        response = asyncio.run(proxy.handle({"message": "Hi"}))

        assert response.status_code == 500
        assert not response.ok
        assert "down" in response.body["error"]
        assert storage.events[-1].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR


class TestScanReceiptProxy:
    """Tests for the receipt-scan proxy's status codes."""

    def test_success(self, gemini_settings, fake_model, audit):
        audit_logger, storage = audit
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(RECEIPT_REPLY))
        proxy = ScanReceiptProxy(agent=agent, audit_logger=audit_logger)

        response = asyncio.run(proxy.handle({"imageBase64": PNG_BASE64}))

        assert response.status_code == 200
        assert response.body["data"] == {
            "merchant": "Corner Market",
            "amount": 23.4,
            "date": "2024-03-02",
            "items": ["Milk", "Bread"],
            "category": "Food & Dining",
        }
        assert storage.events[-1].event_type == AuditEventType.RECEIPT_SCANNED

    @pytest.mark.parametrize("payload", [{}, {"imageBase64": ""}, None])
    def test_missing_image_is_400(self, payload, gemini_settings, fake_model):
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(RECEIPT_REPLY))
        response = asyncio.run(ScanReceiptProxy(agent=agent).handle(payload))
        assert response.status_code == 400
        assert response.body == {"error": "No image provided"}

    def test_invalid_base64_is_400(self, gemini_settings, fake_model):
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(RECEIPT_REPLY))
        response = asyncio.run(ScanReceiptProxy(agent=agent).handle({"imageBase64": "%%%"}))
        assert response.status_code == 400

    def test_unparseable_reply_is_422_with_raw_text(self, gemini_settings, fake_model, audit):
        audit_logger, storage = audit
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model("blurry, sorry"))
        proxy = ScanReceiptProxy(agent=agent, audit_logger=audit_logger)

        response = asyncio.run(proxy.handle({"imageBase64": PNG_BASE64}))

        assert response.status_code == 422
        assert response.body == {"error": "Failed to parse receipt data", "rawText": "blurry, sorry"}
        assert storage.events[-1].event_type == AuditEventType.RECEIPT_PARSE_FAILED

    def test_upstream_failure_is_500(self, gemini_settings, fake_model):
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(RuntimeError("quota")))
        response = asyncio.run(ScanReceiptProxy(agent=agent).handle({"imageBase64": PNG_BASE64}))
        assert response.status_code == 500
        assert "quota" in response.body["error"]

    def test_non_list_items_is_422(self, gemini_settings, fake_model):
        reply = '{"merchant": "Cafe", "amount": 4, "items": 5}'
        agent = ReceiptScanAgent(settings=gemini_settings, model=fake_model(reply))
        response = asyncio.run(ScanReceiptProxy(agent=agent).handle({"imageBase64": PNG_BASE64}))
        assert response.status_code == 422
        assert response.body["rawText"] == reply
