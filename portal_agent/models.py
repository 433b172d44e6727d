"""
Result & Error Model
====================
Canonical record shape and error taxonomy shared by the session,
authentication and extraction layers.

Every public engine operation returns one of the result objects below;
nothing raised inside the engine is allowed to cross its boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Tagged failure kinds surfaced to callers."""

    # Input / precondition
    MISSING_CREDENTIALS = "MissingCredentials"
    NO_STORED_CREDENTIALS = "NoStoredCredentials"
    DECRYPTION_FAILED = "DecryptionFailed"
    NOT_AUTHENTICATED = "NotAuthenticated"

    # Login page structure / outcome
    LOGIN_FORM_NOT_FOUND = "LoginFormNotFound"
    LOGIN_BUTTON_NOT_FOUND = "LoginButtonNotFound"
    LOGIN_REJECTED = "LoginRejected"
    AMBIGUOUS_FAILURE = "AmbiguousFailure"

    # Extraction target structure
    MENU_NOT_FOUND = "MenuNotFound"
    SUB_DOCUMENT_NOT_FOUND = "SubDocumentNotFound"
    GRID_NOT_FOUND = "GridNotFound"

    # Anything the surface itself threw at us
    SURFACE_ERROR = "SurfaceError"


# ---------------------------------------------------------------------------
# Exceptions (internal only, converted to results at the engine boundary)
# ---------------------------------------------------------------------------

class PortalError(Exception):
    """Base class for typed portal failures."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value


class ExtractionError(PortalError):
    """Terminal failure of a single extraction call."""


class SessionStateError(RuntimeError):
    """An illegal session transition was requested."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractedRecord:
    """One row of the portal's request history grid.

    All fields are strings; absent source values are ``""`` so that
    consumers never have to handle ``None``.
    """
    id: str = ""
    title: str = ""
    status: str = ""
    submitted_at: str = ""
    request_type: str = ""
    requestor: str = ""
    handler: str = ""
    detail_url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class AuthResult:
    """Outcome of a login attempt."""
    success: bool
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str = "",
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> "AuthResult":
        return cls(
            success=False,
            error_kind=kind,
            message=message or kind.value,
            diagnostics=diagnostics or {},
        )

    @property
    def error(self) -> Optional[str]:
        return self.error_kind.value if self.error_kind else None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if not self.success:
            out["error"] = self.error
            out["message"] = self.message
            if self.diagnostics:
                out["diagnostics"] = self.diagnostics
        return out


@dataclass
class FetchResult:
    """Outcome of a record extraction."""
    success: bool
    data: List[ExtractedRecord] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def ok(cls, records: List[ExtractedRecord]) -> "FetchResult":
        return cls(success=True, data=list(records))

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "FetchResult":
        return cls(success=False, error_kind=kind, message=message or kind.value)

    @property
    def error(self) -> Optional[str]:
        return self.error_kind.value if self.error_kind else None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "data": [r.to_dict() for r in self.data],
        }
        if not self.success:
            out["error"] = self.error
            out["message"] = self.message
        return out
