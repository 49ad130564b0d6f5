"""Typed service-layer errors.

Services raise these; ``fieldops.main`` maps them onto the HTTP envelope
``{"success": false, "error": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations

from typing import Any


class FieldOpsError(Exception):
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_error(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFound(FieldOpsError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(FieldOpsError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Invalid status transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class InvalidState(FieldOpsError):
    code = "INVALID_STATE"


class ValidationError(FieldOpsError):
    code = "VALIDATION_ERROR"


class AssignmentConflict(FieldOpsError):
    code = "ASSIGNMENT_CONFLICT"

    def __init__(self, conflicts: list):
        messages = ", ".join(c.message for c in conflicts)
        super().__init__(f"Assignment validation failed: {messages}")
        self.conflicts = conflicts

    def to_error(self) -> dict[str, Any]:
        error = super().to_error()
        error["conflicts"] = [c.model_dump(mode="json") for c in self.conflicts]
        return error
