"""
Simulation Core Module
Blackboard, capabilities and error types.
"""

from .blackboard import (
    CAPABILITY_MATRIX,
    PHASE_SUCCESSORS,
    WILDCARD,
    AuditAction,
    Blackboard,
    Capability,
    SimulationPhase,
    canonical_json,
    deep_clone,
    value_hash,
)
from .errors import (
    InvalidPhaseTransition,
    MissingInput,
    NotFound,
    OracleFailure,
    ParseError,
    PermissionDenied,
    SessionClosed,
    SimulationError,
    ValidationFailed,
)

__all__ = [
    "Blackboard",
    "Capability",
    "SimulationPhase",
    "AuditAction",
    "CAPABILITY_MATRIX",
    "PHASE_SUCCESSORS",
    "WILDCARD",
    "canonical_json",
    "deep_clone",
    "value_hash",
    "SimulationError",
    "MissingInput",
    "NotFound",
    "PermissionDenied",
    "SessionClosed",
    "InvalidPhaseTransition",
    "ValidationFailed",
    "OracleFailure",
    "ParseError",
]
