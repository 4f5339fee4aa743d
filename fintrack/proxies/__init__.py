"""AI proxy handlers package."""

from fintrack.proxies.handlers import (
    ChatRequest,
    FinanceAssistantProxy,
    ProxyResponse,
    ReceiptScanRequest,
    ScanReceiptProxy,
)

__all__ = [
    "ChatRequest",
    "FinanceAssistantProxy",
    "ProxyResponse",
    "ReceiptScanRequest",
    "ScanReceiptProxy",
]
