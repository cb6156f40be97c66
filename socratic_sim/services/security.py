"""
Security helpers for the simulation API

Provides CORS origins and request size limits.
"""

from typing import Any, List, Optional

from fastapi import HTTPException, status

from ..config.app_settings import DEFAULT_ALLOWED_ORIGINS

# Allowed origins for CORS (overridable with SIMULATOR_ALLOWED_ORIGINS)
ALLOWED_ORIGINS = list(DEFAULT_ALLOWED_ORIGINS)

# Request size limits (in characters)
MAX_SCENARIO_LENGTH = 50000  # 50k characters
MAX_NAME_LENGTH = 200
MAX_INSTRUCTIONS_LENGTH = 10000
MAX_STUDENT_INPUT_LENGTH = 10000
MAX_ACTORS = 20
MAX_OBJECTIVES = 30
MAX_OBJECTIVE_LENGTH = 1000


def _too_large(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)


def validate_request_size(
    scenario: Optional[str] = None,
    instructions: Optional[str] = None,
    actors: Optional[List[Any]] = None,
    objectives: Optional[List[Any]] = None,
) -> None:
    """
    Validate request field sizes to prevent DoS attacks.

    Args:
        scenario: Scenario text
        instructions: Optional custom instructions
        actors: Optional professor-supplied actors
        objectives: Optional learning objectives

    Raises:
        HTTPException: If any field exceeds size limits
    """
    if scenario and len(scenario) > MAX_SCENARIO_LENGTH:
        raise _too_large(f"scenario exceeds maximum length of {MAX_SCENARIO_LENGTH} characters")

    if instructions and len(instructions) > MAX_INSTRUCTIONS_LENGTH:
        raise _too_large(f"instructions exceeds maximum length of {MAX_INSTRUCTIONS_LENGTH} characters")

    if actors and len(actors) > MAX_ACTORS:
        raise _too_large(f"actors exceeds maximum of {MAX_ACTORS} entries")

    if objectives:
        if len(objectives) > MAX_OBJECTIVES:
            raise _too_large(f"objectives exceeds maximum of {MAX_OBJECTIVES} entries")
        if any(len(str(o)) > MAX_OBJECTIVE_LENGTH for o in objectives):
            raise _too_large(f"each objective must be at most {MAX_OBJECTIVE_LENGTH} characters")
