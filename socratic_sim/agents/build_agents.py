"""
Build Phase Agents
Parser, Scenario Arc Generator, Validator and Finalizer.

Each agent reads its inputs from the blackboard, does one unit of work and
writes its output back under its own capability. The orchestrator runs them
strictly in sequence, so each agent sees the previous agent's writes.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..core.blackboard import value_hash
from ..core.errors import MissingInput, ValidationFailed
from ..models import (
    ParsedData,
    ScenarioOutline,
    SimulationBlueprint,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
    utc_now,
)
from ..prompts import (
    PARSER_SYSTEM_PROMPT,
    PARSER_USER_PROMPT,
    SAG_SYSTEM_PROMPT,
    SAG_USER_PROMPT,
)
from .base import BaseAgent

logger = logging.getLogger("socratic_sim.agents")

DEFAULT_SIMULATION_SETTINGS: Dict[str, Any] = {
    "difficulty": "medium",
    "focus_areas": ["critical thinking", "decision making"],
    "student_level": "undergraduate",
    "socratic_intensity": "moderate",
}

FINALIZER_DEFAULT_SETTINGS: Dict[str, Any] = {
    "evaluation_frequency": 3,
    "narrative_freedom": 0.7,
    "intervention_style": "subtle",
    "socratic_mode": True,
    "actor_temperature": 0.7,
    "max_response_tokens": 500,
    "goal_tracking": True,
}

VALID_INTENSITIES = ["off", "light", "balanced", "active", "intensive"]


def _bullets(items: List[Any], empty: str = "- None specified") -> str:
    lines = [f"- {item}" for item in items if item]
    return "\n".join(lines) if lines else empty


class ParserAgent(BaseAgent):
    """
    Parser Agent - extracts structured data from raw scenario text.

    Reads: raw_input. Writes: parsed_data (preserved).
    """

    default_agent_id = "parser"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        raw_input = self.read("raw_input")
        if not raw_input:
            raise MissingInput("ParserAgent: no raw_input found on the blackboard")

        response = await self.llm_complete_json(
            [
                {"role": "system", "content": PARSER_SYSTEM_PROMPT},
                {"role": "user", "content": PARSER_USER_PROMPT.format(raw_input=raw_input)},
            ],
            temperature=0.3,
        )

        parsed = ParsedData.model_validate(response).to_blackboard()
        self.write("parsed_data", parsed)

        logger.info(
            f"[parser] Parsed scenario_type={parsed['scenario_type']} "
            f"actors={len(parsed['actors'])} constraints={len(parsed['constraints'])}"
        )
        self.broadcast("parsing_complete", {
            "actorCount": len(parsed["actors"]),
            "scenarioType": parsed["scenario_type"],
        })
        return parsed


class SAGAgent(BaseAgent):
    """
    Scenario Arc Generator - turns parsed data into a goal-oriented outline.

    Reads: parsed_data, simulation_settings. Writes: scenario_outline (preserved).
    """

    default_agent_id = "sag"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        parsed = self.read("parsed_data")
        if not parsed:
            raise MissingInput("SAGAgent: no parsed_data found on the blackboard")

        settings = {**DEFAULT_SIMULATION_SETTINGS, **(self.read("simulation_settings") or {})}
        parsed_model = ParsedData.model_validate(parsed)

        response = await self.llm_complete_json(
            [
                {"role": "system", "content": SAG_SYSTEM_PROMPT},
                {"role": "user", "content": self._build_prompt(parsed_model, settings)},
            ],
            temperature=0.7,
        )

        outline = self._build_outline(response, parsed_model, settings)
        self.write("scenario_outline", outline)

        logger.info(
            f"[sag] Outline '{outline['title']}' goals={len(outline['goals'])} "
            f"triggers={len(outline['triggers'])} encounters={len(outline['encounters'])}"
        )
        self.broadcast("outline_ready", {
            "goalCount": len(outline["goals"]),
            "encounterCount": len(outline["encounters"]),
        })
        return outline

    @staticmethod
    def _build_prompt(parsed: ParsedData, settings: Dict[str, Any]) -> str:
        focus_areas = settings.get("focus_areas") or DEFAULT_SIMULATION_SETTINGS["focus_areas"]
        if isinstance(focus_areas, str):
            focus_areas = [focus_areas]
        return SAG_USER_PROMPT.format(
            scenario_type=parsed.scenario_type.value,
            industry=parsed.industry,
            company_name=parsed.context.company_name,
            situation=parsed.context.situation,
            timeframe=parsed.context.timeframe,
            stakes=parsed.context.stakes,
            actors=_bullets([f"{a.role} ({a.name}): {a.description}" for a in parsed.actors]),
            constraints=_bullets(parsed.constraints),
            objectives=_bullets(settings.get("objectives") or parsed.objectives),
            key_challenges=_bullets(parsed.key_challenges),
            difficulty=settings.get("difficulty", "medium"),
            focus_areas=", ".join(str(f) for f in focus_areas),
            student_level=settings.get("student_level", "undergraduate"),
            socratic_intensity=settings.get("socratic_intensity", "moderate"),
        )

    @staticmethod
    def _build_outline(
        response: Dict[str, Any],
        parsed: ParsedData,
        settings: Dict[str, Any],
    ) -> Dict[str, Any]:
        data = dict(response)
        context = parsed.context

        if not data.get("scenario_id"):
            data["scenario_id"] = str(uuid.uuid4())
        if not data.get("title"):
            subject = context.company_name if context.company_name != "Not specified" else parsed.industry
            data["title"] = settings.get("name") or f"{subject.title()} {parsed.scenario_type.value} simulation"
        if not data.get("description"):
            data["description"] = context.situation

        # Operator-supplied personas take precedence over anything the model invents
        if settings.get("actors"):
            data["actors"] = settings["actors"]

        data.pop("metadata", None)
        return ScenarioOutline.model_validate(data).to_blackboard()


class ValidatorAgent(BaseAgent):
    """
    Validator Agent - checks the outline and optional director settings.

    Reads everything and writes only validation_result; inputs are never
    modified. Errors make the result invalid; warnings are advisory.
    """

    default_agent_id = "validator"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        outline = self.read("scenario_outline")
        if outline is None:
            raise MissingInput("ValidatorAgent: no scenario_outline found on the blackboard")

        director_settings = params.get("director_settings") or self.read("director_settings")

        errors, warnings = self._validate_outline(outline)
        if director_settings:
            settings_errors, settings_warnings = self._validate_settings(director_settings)
            errors.extend(settings_errors)
            warnings.extend(settings_warnings)

        result = ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            validated_at=utc_now(),
        ).model_dump(mode="json")
        self.write("validation_result", result)

        if errors:
            logger.warning(f"[validator] Validation failed with {len(errors)} errors")
        logger.info(f"[validator] valid={result['valid']} warnings={len(warnings)}")

        self.broadcast("validation_complete", {
            "valid": result["valid"],
            "errorCount": len(errors),
            "warningCount": len(warnings),
        })
        return result

    @staticmethod
    def _validate_outline(outline: Dict[str, Any]) -> Tuple[List[ValidationIssue], List[ValidationWarning]]:
        source = "scenario_outline"
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []

        def error(path: str, message: str) -> None:
            errors.append(ValidationIssue(source=source, path=path, message=message))

        def warn(severity: str, field: str, message: str) -> None:
            warnings.append(ValidationWarning(source=source, severity=severity, field=field, message=message))

        for required in ("scenario_id", "title", "description"):
            if not outline.get(required):
                error(required, f"{required} is required")

        goals = outline.get("goals")
        if not isinstance(goals, list):
            error("goals", "goals must be an array")
            goals = []

        for index, goal in enumerate(goals):
            if not isinstance(goal, dict):
                error(f"goals[{index}]", "Goal must be an object")
                continue
            if not goal.get("id"):
                error(f"goals[{index}].id", "Goal id is required")
            if not goal.get("description"):
                error(f"goals[{index}].description", "Goal description is required")

            label = goal.get("description") or goal.get("title") or goal.get("id")
            criteria = goal.get("success_criteria")
            evidence = criteria.get("required_evidence") if isinstance(criteria, dict) else criteria
            if not evidence and not goal.get("required_evidence"):
                warn(
                    "warning",
                    f"goals[{index}].success_criteria",
                    f'Goal "{label}" lacks success criteria - Director won\'t be able to track progress',
                )

            tracking = goal.get("progress_tracking")
            if not isinstance(tracking, dict) or not tracking.get("milestones"):
                warn(
                    "info",
                    f"goals[{index}].progress_tracking",
                    f'Goal "{label}" has no progress milestones - Director will use binary completion only',
                )

        if not outline.get("director_triggers"):
            warn(
                "info",
                "director_triggers",
                "No Director triggers defined - Director will only evaluate on message intervals",
            )
        if not outline.get("adaptation_constraints"):
            warn(
                "info",
                "adaptation_constraints",
                "No adaptation constraints defined - Director will use default boundaries",
            )

        return errors, warnings

    @staticmethod
    def _validate_settings(settings: Dict[str, Any]) -> Tuple[List[ValidationIssue], List[ValidationWarning]]:
        source = "director_settings"
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []

        intensity = settings.get("intensity")
        if not intensity:
            errors.append(ValidationIssue(source=source, path="intensity", message="intensity is required"))
        elif intensity not in VALID_INTENSITIES:
            errors.append(ValidationIssue(
                source=source,
                path="intensity",
                message=f"intensity must be one of: {', '.join(VALID_INTENSITIES)}",
            ))
        elif intensity == "off":
            warnings.append(ValidationWarning(
                source=source,
                severity="warning",
                field="intensity",
                message="Director intensity is OFF - no interventions will occur",
            ))

        cadence = settings.get("evaluation_cadence")
        if not cadence:
            errors.append(ValidationIssue(
                source=source, path="evaluation_cadence", message="evaluation_cadence is required"
            ))
        elif isinstance(cadence, dict) and not (
            cadence.get("message_interval")
            or cadence.get("time_interval_seconds")
            or cadence.get("event_triggers")
        ):
            warnings.append(ValidationWarning(
                source=source,
                severity="error",
                field="evaluation_cadence",
                message="No evaluation cadence defined - Director will never run",
            ))

        return errors, warnings


class FinalizerAgent(BaseAgent):
    """
    Finalizer Agent - assembles the immutable simulation blueprint.

    Runs in the FINALIZED phase, reads every build artifact and writes
    simulation_blueprint exactly once.
    """

    default_agent_id = "finalizer"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        outline = self.read("scenario_outline")
        parsed = self.read("parsed_data")
        validation = self.read("validation_result")
        settings = {**FINALIZER_DEFAULT_SETTINGS, **(self.read("simulation_settings") or {})}

        self._check_preconditions(outline, parsed, validation)

        blueprint = self._assemble(outline, parsed, settings)
        self.write("simulation_blueprint", blueprint)

        logger.info(
            f"[finalizer] Blueprint {blueprint['scenario_id']} locked "
            f"(outline_hash={blueprint['metadata']['source_data_hashes']['outline_hash']})"
        )
        self.broadcast("blueprint_finalized", {
            "scenarioId": blueprint["scenario_id"],
            "goalCount": len(blueprint["goals"]),
        })
        return blueprint

    @staticmethod
    def _check_preconditions(
        outline: Optional[Dict[str, Any]],
        parsed: Optional[Dict[str, Any]],
        validation: Optional[Dict[str, Any]],
    ) -> None:
        if not outline:
            raise MissingInput("Cannot finalize: scenario_outline is missing")
        if not parsed:
            raise MissingInput("Cannot finalize: parsed_data is missing")
        if not validation:
            raise MissingInput("Cannot finalize: validation_result is missing")
        if not validation.get("valid"):
            errors = validation.get("errors", [])
            raise ValidationFailed(f"Cannot finalize: validation failed with {len(errors)} errors", errors)
        if not outline.get("goals"):
            raise ValidationFailed(
                "Cannot finalize: scenario_outline must have at least one goal",
                [{"source": "scenario_outline", "path": "goals", "message": "at least one goal is required"}],
            )

    def _assemble(
        self,
        outline: Dict[str, Any],
        parsed: Dict[str, Any],
        settings: Dict[str, Any],
    ) -> Dict[str, Any]:
        context = parsed.get("context") or {}
        blueprint = {
            "scenario_id": outline.get("scenario_id"),
            "title": outline.get("title", ""),
            "description": outline.get("description", ""),
            "scenario_text": context.get("situation") or outline.get("description", ""),
            "actors": self._assemble_actors(outline.get("actors"), parsed.get("actors")),
            "goals": outline.get("goals", []),
            "rules": outline.get("rules", []),
            "triggers": outline.get("triggers", []),
            "encounters": outline.get("encounters", []),
            "lessons": outline.get("lessons", []),
            "tests": outline.get("tests", []),
            "objectives": settings.get("objectives") or parsed.get("objectives", []),
            "director_settings": {
                "evaluation_frequency": settings["evaluation_frequency"],
                "narrative_freedom": settings["narrative_freedom"],
                "intervention_style": settings["intervention_style"],
                "goal_tracking": settings["goal_tracking"] is not False,
            },
            "actor_settings": {
                "socratic_mode": settings["socratic_mode"] is not False,
                "temperature": settings["actor_temperature"],
                "max_response_tokens": settings["max_response_tokens"],
                "personality_traits": settings.get("personality_traits") or {},
                "ai_mode": settings.get("ai_mode"),
                "complexity": settings.get("complexity"),
                "custom_instructions": settings.get("custom_instructions") or settings.get("instructions"),
                "student_role": settings.get("student_role"),
                "document_name": settings.get("document_name"),
                "document_instructions": settings.get("document_instructions"),
            },
            "context": context,
            "metadata": {
                "created_at": utc_now(),
                "finalized_by": self.agent_id,
                "builder_version": "1.0",
                "validation_passed": True,
                "source_data_hashes": {
                    "outline_hash": value_hash(outline),
                    "parsed_data_hash": value_hash(parsed),
                    "settings_hash": value_hash(settings),
                },
                "finalized_at": utc_now(),
            },
            "immutable": True,
            "locked_at": utc_now(),
        }
        return SimulationBlueprint.model_validate(blueprint).to_blackboard()

    @staticmethod
    def _assemble_actors(
        outline_actors: Optional[List[Any]],
        parsed_actors: Optional[List[Any]],
    ) -> List[Dict[str, Any]]:
        if outline_actors:
            return [a for a in outline_actors if isinstance(a, (dict, str))]

        actors = []
        for actor in parsed_actors or []:
            if isinstance(actor, str):
                actors.append({"name": actor, "role": "advisor"})
            elif isinstance(actor, dict):
                actors.append({
                    "name": actor.get("name") or actor.get("role"),
                    "role": actor.get("role") or "advisor",
                    "description": actor.get("description"),
                    "personality": actor.get("personality") or {},
                })
        return actors
