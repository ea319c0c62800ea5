"""
Scheduler error taxonomy.

Every error carries a machine-readable code, a human message and optional
details so the HTTP layer can render a standardized error body.
"""

from typing import Any, Dict, Optional


class SchedulerError(Exception):
    """Base exception for recurring schedule errors"""
    code = "SCHEDULER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SchedulerError):
    """Pattern input rejected; names the offending field."""
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message, details={"field": field})


class StoreUnavailable(SchedulerError):
    """The recurrence pattern storage is structurally missing."""
    code = "STORE_UNAVAILABLE"


class TransientPersistenceError(SchedulerError):
    """A single persistence call failed or timed out; safe to retry."""
    code = "TRANSIENT_PERSISTENCE"


class DuplicateOccurrence(SchedulerError):
    """A ride for this pattern and date already exists."""
    code = "DUPLICATE_OCCURRENCE"


class PatternNotFound(SchedulerError):
    code = "NOT_FOUND"

    def __init__(self, pattern_id: str):
        self.pattern_id = pattern_id
        super().__init__(f"Recurring pattern {pattern_id} not found", details={"pattern_id": pattern_id})
