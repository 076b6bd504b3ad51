"""
Exception hierarchy for the Intellura SDK.

Transport failures are raised by the HTTP client as typed exceptions. Each
workflow refines them per endpoint and converts them into an ``Outcome`` at
its boundary, so display code only ever inspects the closed ``ErrorKind``
taxonomy and never raw response text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    SILENT = "silent"
    ACTIONABLE = "actionable"
    RETRYABLE = "retryable"
    AUTH = "auth"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class ErrorKind(Enum):
    """Closed error taxonomy shared by every workflow."""

    USER_REJECTED = ("user_rejected", ErrorCategory.SILENT)
    SUPERSEDED = ("superseded", ErrorCategory.SILENT)
    PROVIDER_UNAVAILABLE = ("provider_unavailable", ErrorCategory.ACTIONABLE)
    WALLET_REQUIRED = ("wallet_required", ErrorCategory.ACTIONABLE)
    PROVIDER_ERROR = ("provider_error", ErrorCategory.RETRYABLE)
    NETWORK = ("network", ErrorCategory.RETRYABLE)
    VERIFICATION_FAILED = ("verification_failed", ErrorCategory.RETRYABLE)
    UNKNOWN = ("unknown", ErrorCategory.RETRYABLE)
    UNAUTHENTICATED = ("unauthenticated", ErrorCategory.AUTH)
    ALREADY_LINKED = ("already_linked", ErrorCategory.CONFLICT)
    ALREADY_CLAIMED = ("already_claimed", ErrorCategory.CONFLICT)
    ALREADY_REFERRED = ("already_referred", ErrorCategory.CONFLICT)
    INVALID_FORMAT = ("invalid_format", ErrorCategory.VALIDATION)
    SELF_REFERRAL = ("self_referral", ErrorCategory.VALIDATION)
    ENGAGEMENT_PENDING = ("engagement_pending", ErrorCategory.VALIDATION)
    COOLDOWN_ACTIVE = ("cooldown_active", ErrorCategory.VALIDATION)
    CLAIM_IN_PROGRESS = ("claim_in_progress", ErrorCategory.VALIDATION)
    NOT_FOUND = ("not_found", ErrorCategory.NOT_FOUND)
    CODE_NOT_FOUND = ("code_not_found", ErrorCategory.NOT_FOUND)

    def __init__(self, label: str, category: ErrorCategory) -> None:
        self.label = label
        self.category = category

    @property
    def silent(self) -> bool:
        return self.category is ErrorCategory.SILENT

    @property
    def is_conflict(self) -> bool:
        return self.category is ErrorCategory.CONFLICT


class IntelluraError(Exception):
    """Base exception for all SDK errors.

    Attributes:
        message: Human-readable error description
        code: Backend error code, when the response carried one
        status_code: HTTP status that produced the error, if any
        details: Raw error payload or extra context
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str = "",
        code: Optional[Any] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message


# ==================== Transport Errors ====================


class NetworkError(IntelluraError):
    """Raised when the backend cannot be reached."""

    kind = ErrorKind.NETWORK


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds the configured timeout."""


class RateLimitError(NetworkError):
    """Raised when the backend throttles the client."""

    def __init__(self, message: str = "", retry_after: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(IntelluraError):
    """Raised on 5xx responses."""

    kind = ErrorKind.UNKNOWN


class BadRequestError(IntelluraError):
    """Raised on 400 responses before endpoint-specific refinement."""

    kind = ErrorKind.UNKNOWN


class UnauthenticatedError(IntelluraError):
    """Raised when there is no valid session."""

    kind = ErrorKind.UNAUTHENTICATED


class NotFoundError(IntelluraError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(IntelluraError):
    """Raised on 409 responses before endpoint-specific refinement."""

    kind = ErrorKind.UNKNOWN


class UnknownError(IntelluraError):
    kind = ErrorKind.UNKNOWN


# ==================== Wallet Provider Errors ====================


class UserRejectedError(IntelluraError):
    """The user declined a wallet prompt. Never surfaced to the user."""

    kind = ErrorKind.USER_REJECTED


class ProviderUnavailableError(IntelluraError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE


class ProviderError(IntelluraError):
    kind = ErrorKind.PROVIDER_ERROR


class SupersededError(IntelluraError):
    """An in-flight attempt was overtaken by an account, network or identity change."""

    kind = ErrorKind.SUPERSEDED


# ==================== Conflict Errors ====================


class AlreadyLinkedError(IntelluraError):
    kind = ErrorKind.ALREADY_LINKED


class AlreadyClaimedError(IntelluraError):
    kind = ErrorKind.ALREADY_CLAIMED


class AlreadyReferredError(IntelluraError):
    kind = ErrorKind.ALREADY_REFERRED


# ==================== Validation Errors ====================


class InvalidFormatError(IntelluraError):
    kind = ErrorKind.INVALID_FORMAT


class SelfReferralError(IntelluraError):
    kind = ErrorKind.SELF_REFERRAL


class EngagementPendingError(IntelluraError):
    """Raised when a quest claim is attempted before the engagement window elapses."""

    kind = ErrorKind.ENGAGEMENT_PENDING

    def __init__(self, message: str = "", remaining: float = 0.0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.remaining = remaining


class CooldownActiveError(IntelluraError):
    kind = ErrorKind.COOLDOWN_ACTIVE


class ClaimInProgressError(IntelluraError):
    kind = ErrorKind.CLAIM_IN_PROGRESS


# ==================== Endpoint-specific Errors ====================


class VerificationFailedError(IntelluraError):
    """Signature did not verify or the nonce expired."""

    kind = ErrorKind.VERIFICATION_FAILED


class CodeNotFoundError(IntelluraError):
    kind = ErrorKind.CODE_NOT_FOUND


class WalletRequiredError(IntelluraError):
    kind = ErrorKind.WALLET_REQUIRED


@dataclass(frozen=True)
class Outcome:
    """Typed result returned by every workflow action."""

    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None, message: Optional[str] = None) -> "Outcome":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, exc: IntelluraError, value: Any = None) -> "Outcome":
        return cls(ok=False, value=value, error=exc.kind, message=exc.message or None)

    @property
    def silent(self) -> bool:
        return self.error is not None and self.error.silent
