"""
Error taxonomy for the Control Tower engine.

Every engine failure surfaces as a subclass of ControlTowerError so the HTTP
layer can map it to a status code without inspecting messages:

- ValidationError: malformed filter input or RCA payload (422)
- ConfigurationError: untracked KPI key or broken rule table, a deployment
  defect rather than a user condition (500)
- RcaNotFoundError: RCA id missing or owned by another tenant; both cases are
  reported identically (404)
- StorageError: fact/RCA store unreachable or failing, never retried (503)
"""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError


class ControlTowerError(Exception):
    """Base exception for all engine failures."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ControlTowerError):
    """Input failed field constraints (filter, RCA create/update payload)."""

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, subject: str) -> "ValidationError":
        """Translate a pydantic ValidationError raised while parsing subject."""
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return cls(f"Invalid {subject}", {"errors": errors})


class ConfigurationError(ControlTowerError):
    """A KPI key or rule table is not configured for the requested plan tier."""

    pass


class RcaNotFoundError(ControlTowerError):
    """RCA record does not exist for the requesting tenant."""

    def __init__(self, rca_id: int):
        super().__init__(f"RCA record {rca_id} not found", {"rca_id": rca_id})
        self.rca_id = rca_id


class StorageError(ControlTowerError):
    """Base exception for all storage operation failures."""

    pass
