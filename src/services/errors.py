"""
Commission engine error taxonomy.

Every error carries a stable ``code`` for callers, a human-readable
message and optional details. Routers render them through one exception
handler, so services raise these instead of HTTPException.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for all commission engine errors."""

    code = "engine_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(EngineError):
    """Malformed numeric or enum input. Never partially applied."""

    code = "validation_error"
    status_code = 400


class InvalidInputError(ValidationError):
    """Commission calculation input out of range."""

    code = "invalid_input"


class NotFoundError(EngineError):
    """Agent, tier, approval, payment or transaction is missing."""

    code = "not_found"
    status_code = 404


class AccessDenied(EngineError):
    """Caller is outside the authorization scope of the operation."""

    code = "access_denied"
    status_code = 403


class DemotionNotAllowed(EngineError):
    """Promotion target ranks below the agent's current tier."""

    code = "demotion_not_allowed"
    status_code = 409


class DuplicateApprovalError(EngineError):
    """An approval already exists for the transaction."""

    code = "duplicate_approval"
    status_code = 409


class DuplicateBonusError(EngineError):
    """A leadership bonus was already recorded for the transaction pair."""

    code = "duplicate_bonus"
    status_code = 409


class InvalidStateTransition(EngineError):
    """Status change not allowed from the current state."""

    code = "invalid_state_transition"
    status_code = 409


class PersistenceError(EngineError):
    """Storage failure. Surfaced as-is, never retried."""

    code = "persistence_error"
    status_code = 500

    @property
    def public_message(self) -> str:
        return "The operation could not be completed. Please try again later."
