"""
AI Agents for fintrack

Two thin wrappers around the Gemini API:

1. FINANCE ASSISTANT:
   - CAN: Answer questions about the user's own transactions
   - CANNOT: See anything but the transactions it is handed
   - The full list goes into the prompt as-is, with no truncation

2. RECEIPT SCANNER:
   - CAN: Read merchant, total, date, items and category from a photo
   - CANNOT: Save anything; its output is a proposal for the user to confirm
   - MUST: Fail loudly if the model's reply is not JSON

Upstream calls are retried with tenacity; once retries are exhausted
the failure is raised as AIServiceError for the caller to report.
"""

import base64
import binascii
import json
import re
from io import BytesIO
from typing import Any, Optional

import google.generativeai as genai
from PIL import Image, UnidentifiedImageError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from fintrack.config import GeminiSettings, get_settings
from fintrack.models.transaction import RECEIPT_CATEGORIES, ReceiptData


class AIServiceError(Exception):
    """The upstream model call failed or returned nothing usable."""
    pass


class ReceiptParseError(AIServiceError):
    """The receipt scanner's reply could not be parsed as JSON."""

    def __init__(self, raw_text: str, message: str = "Failed to parse receipt data"):
        self.raw_text = raw_text
        super().__init__(message)


class InvalidImageError(AIServiceError):
    """The uploaded image is not valid base64."""
    pass


_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> dict:
    """
    Pull the outermost {...} block out of a model reply and parse it.

    Models sometimes wrap JSON in prose or code fences.

    Raises:
        ValueError: If there is no JSON object, or it does not parse
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ValueError("Could not find JSON in response")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def detect_image_mime_type(image_bytes: bytes) -> str:
    """
    MIME type of an uploaded photo, as identified by Pillow.

    Bytes Pillow cannot identify are sent as JPEG, the format phone
    cameras produce; the model reports an unreadable image itself.
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return Image.MIME.get(img.format, "image/jpeg")
    except (UnidentifiedImageError, OSError):
        return "image/jpeg"


ASSISTANT_GUIDELINES = """You are a professional and considerate personal financial assistant.

Follow these guidelines:
1. Analyze the user's financial data to provide personalized insights.
2. Be empathetic and supportive when discussing financial challenges.
3. Offer practical, actionable advice based on the user's spending patterns.
4. Maintain a professional but friendly tone.
5. Refer to specific transaction data when relevant to show personalization.
6. Focus on helping the user improve their financial health.
7. Never make up information - only use the data provided.
8. If uncertain about something, acknowledge the limitation."""


RECEIPT_PROMPT = f"""You are a receipt scanning assistant. Analyze the receipt image and extract the following information in JSON format ONLY:
{{
  "merchant": "Store or business name",
  "amount": "Total amount as a number without currency symbols",
  "date": "Date in YYYY-MM-DD format",
  "items": ["Item 1", "Item 2", "...etc"],
  "category": "One of: {', '.join(RECEIPT_CATEGORIES)}"
}}

If you can't determine a value, use null. Don't include any explanations, just the JSON."""


class _GeminiAgent:
    """Shared model setup and retrying call for both agents."""

    def __init__(
        self,
        model_name: str,
        temperature: float,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
    ):
        self._settings = settings or get_settings().gemini
        if model is None:
            model = self._configure_genai(model_name, temperature)
        self._model = model

    def _configure_genai(self, model_name: str, temperature: float):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def _generate(self, contents) -> str:
        """Call the model, retrying transient failures, and return its text."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=wait_exponential(multiplier=1, min=1, max=8),
                reraise=True,
            ):
                with attempt:
                    response = await self._model.generate_content_async(contents)
                    text = response.text
        except Exception as e:
            raise AIServiceError(f"Gemini API error: {e}") from e

        if not text or not text.strip():
            raise AIServiceError("Gemini API returned an empty response")
        return text.strip()


class FinanceAssistantAgent(_GeminiAgent):
    """Chat-style assistant grounded in the user's transactions."""

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
    ):
        settings = settings or get_settings().gemini
        super().__init__(
            model_name=settings.model_name,
            temperature=settings.temperature,
            settings=settings,
            model=model,
        )

    @staticmethod
    def build_prompt(message: str, transactions: list[dict]) -> str:
        """Guidelines, then every transaction verbatim, then the question."""
        return (
            f"{ASSISTANT_GUIDELINES}\n\n"
            "You have access to the following financial data for reference:\n"
            f"{json.dumps(transactions, ensure_ascii=False, default=str)}\n\n"
            f"User: {message}"
        )

    async def answer(self, message: str, transactions: list[dict]) -> str:
        """
        Answer one user message.

        Raises:
            AIServiceError: If the model call fails
        """
        return await self._generate(self.build_prompt(message, transactions))


class ReceiptScanAgent(_GeminiAgent):
    """Extracts receipt fields from a base64-encoded photo."""

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
    ):
        settings = settings or get_settings().gemini
        super().__init__(
            model_name=settings.vision_model_name,
            temperature=0.1,  # Low temperature for consistency
            settings=settings,
            model=model,
        )

    @staticmethod
    def decode_image(image_base64: str) -> bytes:
        """
        Decode the upload, accepting an optional data: URL prefix.

        Raises:
            InvalidImageError: If the payload is not valid base64
        """
        payload = image_base64.split(",", 1)[1] if image_base64.startswith("data:") else image_base64
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidImageError(f"Image is not valid base64: {e}") from e

    async def scan(self, image_base64: str) -> ReceiptData:
        """
        Scan one receipt.

        Raises:
            InvalidImageError: If the image cannot be decoded
            ReceiptParseError: If the model's reply is not JSON
            AIServiceError: If the model call fails
        """
        image_bytes = self.decode_image(image_base64)
        contents = [
            RECEIPT_PROMPT,
            {"mime_type": detect_image_mime_type(image_bytes), "data": image_bytes},
            "Extract the receipt information into the required JSON format.",
        ]
        text = await self._generate(contents)

        try:
            return ReceiptData(**extract_json_object(text))
        except ValueError:
            # pydantic's ValidationError is a ValueError too
            raise ReceiptParseError(raw_text=text)
