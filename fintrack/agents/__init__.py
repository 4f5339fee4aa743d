"""AI Agents package."""

from fintrack.agents.ai_agents import (
    AIServiceError,
    FinanceAssistantAgent,
    InvalidImageError,
    ReceiptParseError,
    ReceiptScanAgent,
    extract_json_object,
)

__all__ = [
    "AIServiceError",
    "FinanceAssistantAgent",
    "InvalidImageError",
    "ReceiptParseError",
    "ReceiptScanAgent",
    "extract_json_object",
]
