"""ServiceResult and ServiceError: the universal service contract.

INVARIANT: All service-layer methods return ServiceResult.
The CLI, an HTTP layer or a scheduled job all consume this one type, so
batch jobs report success and failure without relying on exit codes.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    """Error codes shared by every service."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INCONSISTENT_STATE = "INCONSISTENT_STATE"
    NO_ACTIVE_GENERATION = "NO_ACTIVE_GENERATION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    REBUILD_FAILED = "REBUILD_FAILED"
    DISCOVERY_FAILED = "DISCOVERY_FAILED"
    INFERENCE_FAILED = "INFERENCE_FAILED"
    LOAD_FAILED = "LOAD_FAILED"
    UPGRADE_FAILED = "UPGRADE_FAILED"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"rebuild"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (generation pinned, timing, telemetry).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: ErrorCode | str,
        message: str,
        *,
        warnings: list[str] | None = None,
        **detail: Any,
    ) -> ServiceResult:
        """Build an ``ok=False`` result carrying a :class:`ServiceError`."""
        return cls(
            ok=False,
            op=op,
            warnings=warnings or [],
            error=ServiceError(code=str(code), message=message, detail=detail),
        )
