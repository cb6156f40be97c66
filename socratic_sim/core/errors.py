"""
Error hierarchy for the simulation core.

Every error knows the HTTP status it maps to at the API boundary and how to
render itself as the user-facing envelope ``{error, details?}``.
"""

from typing import Any, Dict, List, Optional


class SimulationError(Exception):
    """Base class for all simulation errors."""

    http_status = 500
    public_message = "Internal server error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self, debug: bool = False) -> Dict[str, Any]:
        """Render the error envelope, redacting internals unless debug is on."""
        if self.http_status < 500:
            body: Dict[str, Any] = {"error": self.message}
        else:
            body = {"error": self.public_message}
        if debug:
            body["details"] = self.details if self.details is not None else self.message
        elif self.http_status < 500 and self.details is not None:
            body["details"] = self.details
        return body


class MissingInput(SimulationError):
    """An agent precondition or request field is absent."""
    http_status = 400


class NotFound(SimulationError):
    """An unknown simulation or session id."""
    http_status = 404


class SessionClosed(SimulationError):
    """A student turn against a session that is no longer active."""
    http_status = 409


class PermissionDenied(SimulationError):
    """An agent touched a key its current-phase capabilities do not cover."""

    def __init__(self, agent_id: str, key: str, phase: str, reason: str = "not writable"):
        super().__init__(
            f"Agent '{agent_id}' cannot modify '{key}' in phase '{phase}': {reason}",
            details={"agent": agent_id, "key": key, "phase": phase},
        )
        self.agent_id = agent_id
        self.key = key
        self.phase = phase


class InvalidPhaseTransition(SimulationError):
    """A phase transition that is not the designated successor."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot transition from '{current}' to '{requested}'",
            details={"from": current, "to": requested},
        )
        self.current = current
        self.requested = requested


class ValidationFailed(SimulationError):
    """Structured validation errors that halt the build pipeline."""
    http_status = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, details=errors or [])
        self.errors = errors or []


class OracleFailure(SimulationError):
    """The LLM call failed or timed out."""
    public_message = "Language model request failed"


class ParseError(OracleFailure):
    """The LLM returned text that is not parseable JSON."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message, details={"preview": raw_text[:200]})
        self.raw_text = raw_text
