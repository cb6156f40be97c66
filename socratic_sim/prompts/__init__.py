"""
Prompt templates for the simulation agents.
"""

from .actor import (
    ACTION_GUIDANCE,
    ACTOR_CLOSING,
    ACTOR_INTRO,
    AI_MODE_GUIDANCE,
    COMPLEXITY_GUIDANCE,
    DIRECTOR_NOTE,
    ENCOUNTER_GUIDANCE,
    NO_INTERVENTION,
    PEDAGOGICAL_RULES,
    SCENARIO_CUES_HEADER,
    TRIGGERS_NOTE_HEADER,
)
from .director import DIRECTOR_EVALUATION_PROMPT, DIRECTOR_SYSTEM_PROMPT
from .parser import PARSER_SYSTEM_PROMPT, PARSER_USER_PROMPT
from .sag import SAG_SYSTEM_PROMPT, SAG_USER_PROMPT
from .setup import SETUP_SYSTEM_PROMPT, SETUP_USER_PROMPT

__all__ = [
    "ACTION_GUIDANCE",
    "ACTOR_CLOSING",
    "ACTOR_INTRO",
    "AI_MODE_GUIDANCE",
    "COMPLEXITY_GUIDANCE",
    "DIRECTOR_NOTE",
    "ENCOUNTER_GUIDANCE",
    "NO_INTERVENTION",
    "PEDAGOGICAL_RULES",
    "SCENARIO_CUES_HEADER",
    "TRIGGERS_NOTE_HEADER",
    "DIRECTOR_EVALUATION_PROMPT",
    "DIRECTOR_SYSTEM_PROMPT",
    "PARSER_SYSTEM_PROMPT",
    "PARSER_USER_PROMPT",
    "SAG_SYSTEM_PROMPT",
    "SAG_USER_PROMPT",
    "SETUP_SYSTEM_PROMPT",
    "SETUP_USER_PROMPT",
]
