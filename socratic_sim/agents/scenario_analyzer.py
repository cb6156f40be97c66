"""
Scenario Analyzer - professor-facing setup assistant.

Runs before any blackboard exists: one JSON extraction call over the pasted
scenario, plus deterministic parameter suggestions and a student-role check
the setup form uses to pre-fill its fields.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..core.errors import MissingInput, OracleFailure
from ..prompts import SETUP_SYSTEM_PROMPT, SETUP_USER_PROMPT
from .base import LLMClient

logger = logging.getLogger("socratic_sim.agents")

PERSONALITY_MODES = ["supportive", "challenging", "neutral", "expert", "conflicted", "professional"]
KNOWLEDGE_LEVELS = ["expert", "intermediate", "basic"]
SETUP_SCENARIO_TYPES = [
    "ethical_dilemma",
    "crisis_management",
    "negotiation",
    "strategic_planning",
    "leadership_challenge",
    "conflict_resolution",
]

PARAMETER_SUGGESTIONS: Dict[str, Dict[str, Any]] = {
    "ethical_dilemma": {
        "ai_mode": "challenger",
        "complexity": "escalating",
        "narrative_freedom": 0.7,
        "duration": 20,
        "reasoning": "Ethical dilemmas benefit from challenging assumptions and exploring consequences",
    },
    "crisis_management": {
        "ai_mode": "adaptive",
        "complexity": "escalating",
        "narrative_freedom": 0.5,
        "duration": 25,
        "reasoning": "Crisis scenarios need adaptive support with structured progression",
    },
    "negotiation": {
        "ai_mode": "expert",
        "complexity": "adaptive",
        "narrative_freedom": 0.6,
        "duration": 30,
        "reasoning": "Negotiations benefit from expert guidance and flexible scenarios",
    },
    "strategic_planning": {
        "ai_mode": "coach",
        "complexity": "linear",
        "narrative_freedom": 0.8,
        "duration": 30,
        "reasoning": "Strategic planning needs supportive guidance with high exploration freedom",
    },
    "leadership_challenge": {
        "ai_mode": "challenger",
        "complexity": "escalating",
        "narrative_freedom": 0.6,
        "duration": 25,
        "reasoning": "Leadership scenarios benefit from being challenged on decisions",
    },
    "conflict_resolution": {
        "ai_mode": "coach",
        "complexity": "adaptive",
        "narrative_freedom": 0.7,
        "duration": 20,
        "reasoning": "Conflict resolution needs supportive coaching with flexibility",
    },
}

DEFAULT_PARAMETER_SUGGESTION: Dict[str, Any] = {
    "ai_mode": "adaptive",
    "complexity": "escalating",
    "narrative_freedom": 0.6,
    "duration": 20,
    "reasoning": "Default balanced approach for general scenarios",
}


def suggest_parameters(scenario_type: Optional[str]) -> Dict[str, Any]:
    """Map a setup scenario type to suggested AI behavior parameters."""
    return dict(PARAMETER_SUGGESTIONS.get(scenario_type or "", DEFAULT_PARAMETER_SUGGESTION))


def validate_actors(actors: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Exactly one actor must be the student's role."""
    student_roles = [a for a in actors if isinstance(a, dict) and a.get("is_student_role")]

    if not student_roles:
        return {
            "valid": False,
            "warning": "No student role identified. Please specify which role the student should play.",
            "suggestion": "The primary decision-maker should typically be the student role.",
        }
    if len(student_roles) > 1:
        return {
            "valid": False,
            "warning": "Multiple student roles identified. Only one role should be assigned to the student.",
            "suggestion": "Choose the main protagonist or decision-maker as the student role.",
        }
    return {"valid": True}


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _normalize_actor(actor: Any) -> Optional[Dict[str, Any]]:
    if isinstance(actor, str):
        actor = {"name": actor, "role": actor}
    if not isinstance(actor, dict):
        return None

    name = actor.get("name") or actor.get("role") or "Unnamed"
    normalized: Dict[str, Any] = {
        "name": name,
        "role": actor.get("role") or name,
        "is_student_role": bool(actor.get("is_student_role")),
        "description": actor.get("description") or "",
    }
    if normalized["is_student_role"]:
        return normalized

    mode = str(actor.get("personality_mode") or "").lower()
    level = str(actor.get("knowledge_level") or "").lower()
    loyalties = actor.get("loyalties") if isinstance(actor.get("loyalties"), dict) else {}
    normalized.update({
        "personality_mode": mode if mode in PERSONALITY_MODES else "neutral",
        "knowledge_level": level if level in KNOWLEDGE_LEVELS else "intermediate",
        "goals": _string_list(actor.get("goals")),
        "hidden_info": _string_list(actor.get("hidden_info")),
        "priorities": _string_list(actor.get("priorities")),
        "loyalties": {
            "supports": _string_list(loyalties.get("supports")),
            "opposes": _string_list(loyalties.get("opposes")),
        },
    })
    return normalized


class ScenarioAnalyzer:
    """One-shot extraction of actors, objectives and parameters for the setup form."""

    def __init__(self, llm_client: LLMClient, model: Optional[str] = None, timeout_seconds: float = 60.0):
        self.llm_client = llm_client
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def analyze(self, scenario_text: str) -> Dict[str, Any]:
        if not scenario_text or not scenario_text.strip():
            raise MissingInput("scenario_text is required")

        logger.info(f"[setup] Analyzing scenario (len={len(scenario_text)})")
        try:
            raw = await asyncio.wait_for(
                self.llm_client.complete_json(
                    [
                        {"role": "system", "content": SETUP_SYSTEM_PROMPT},
                        {"role": "user", "content": SETUP_USER_PROMPT.format(scenario_text=scenario_text)},
                    ],
                    model=self.model,
                    temperature=0.3,
                ),
                timeout=self.timeout_seconds,
            )
        except OracleFailure:
            raise
        except asyncio.TimeoutError:
            raise OracleFailure(f"Scenario analysis timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.error(f"[setup] Scenario analysis failed: {e}")
            raise OracleFailure(f"Failed to parse scenario: {e}") from e

        parsed = self._normalize(raw)
        return {
            "parsed": parsed,
            "suggested_parameters": suggest_parameters(parsed["scenario_type"]),
            "actor_validation": validate_actors(parsed["actors"]),
            "suggested_first_message": raw.get("suggested_first_message") or None,
        }

    @staticmethod
    def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
        actors = [a for a in (_normalize_actor(x) for x in raw.get("actors") or []) if a]

        scenario_type = str(raw.get("scenario_type") or "").lower()
        context = raw.get("context") if isinstance(raw.get("context"), dict) else {}
        complexity = str(context.get("complexity_level") or "").lower()

        try:
            confidence = min(1.0, max(0.0, float(raw.get("confidence", 0.5))))
        except (TypeError, ValueError):
            confidence = 0.5

        triggers = []
        for trigger in raw.get("suggested_triggers") or []:
            if isinstance(trigger, dict) and trigger.get("condition"):
                triggers.append({
                    "condition": str(trigger["condition"]),
                    "action": str(trigger.get("action") or ""),
                    "actor": str(trigger.get("actor") or ""),
                })

        return {
            "actors": actors,
            "scenario_type": scenario_type if scenario_type in SETUP_SCENARIO_TYPES else None,
            "context": {
                "industry": context.get("industry") or "general",
                "stakes": context.get("stakes") or "Not specified",
                "time_pressure": bool(context.get("time_pressure")),
                "complexity_level": complexity if complexity in ("low", "medium", "high") else "medium",
            },
            "learning_objectives": _string_list(raw.get("learning_objectives"))[:15],
            "key_decision_points": _string_list(raw.get("key_decision_points")),
            "suggested_triggers": triggers,
            "confidence": confidence,
            "ambiguities": _string_list(raw.get("ambiguities")),
        }
