"""
Portal Agent
============
Login and request-history extraction for a web portal with no API,
driven through a Playwright browser surface and injected scripts.
"""

from .engine import PortalEngine
from .models import AuthResult, ErrorKind, ExtractedRecord, FetchResult
from .run_config import PortalRunConfig, SettleBudget

__version__ = "1.0.0"

__all__ = [
    "PortalEngine",
    "PortalRunConfig",
    "SettleBudget",
    "AuthResult",
    "FetchResult",
    "ExtractedRecord",
    "ErrorKind",
]
