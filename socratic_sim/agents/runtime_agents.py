"""
Runtime Phase Agents
Director (periodic progress evaluation) and Actor (per-turn Socratic reply).

The Actor serves every student turn and only ever reads the Director state
that exists when it starts composing. The Director runs out of band at its
own cadence and never blocks a turn; when its LLM call fails it records a
fallback decision instead of raising.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..core.errors import MissingInput, OracleFailure
from ..models import (
    ActivatedTrigger,
    ActorResponse,
    ActorResponseMetadata,
    ActorSettings,
    AIMode,
    BlueprintActor,
    ComplexityMode,
    DirectorAction,
    DirectorDecision,
    DirectorEvaluation,
    DirectorPhase,
    DirectorSettings,
    DirectorState,
    GoalProgress,
    GoalStatus,
    MessageRole,
    StudentState,
    utc_now,
)
from ..prompts import (
    ACTION_GUIDANCE,
    ACTOR_CLOSING,
    ACTOR_INTRO,
    AI_MODE_GUIDANCE,
    COMPLEXITY_GUIDANCE,
    DIRECTOR_EVALUATION_PROMPT,
    DIRECTOR_NOTE,
    DIRECTOR_SYSTEM_PROMPT,
    ENCOUNTER_GUIDANCE,
    NO_INTERVENTION,
    PEDAGOGICAL_RULES,
    SCENARIO_CUES_HEADER,
    TRIGGERS_NOTE_HEADER,
)
from .base import BaseAgent

logger = logging.getLogger("socratic_sim.agents")

MAX_EVALUATIONS = 20
RECENT_CONVERSATION_WINDOW = 10
CONVERSATION_SNIPPET_CHARS = 200
MAX_SUGGESTED_ENCOUNTERS = 3

KEYWORD_MARKERS = ("mention", "says", "keyword")
QUOTED_TERM = re.compile(r'["“”]([^"“”]+)["“”]')
NUMBER = re.compile(r"\d+")


def _condition_kind(condition: str) -> Optional[str]:
    """Classify a trigger condition as 'keyword', 'message_count', or None."""
    condition_lower = condition.lower()
    if any(marker in condition_lower for marker in KEYWORD_MARKERS) and QUOTED_TERM.search(condition):
        return "keyword"
    if "message" in condition_lower and NUMBER.search(condition_lower):
        return "message_count"
    return None


def _coerce_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _latest_decision(director_state: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not director_state:
        return None
    evaluations = director_state.get("evaluations") or []
    if not evaluations:
        return None
    return evaluations[-1].get("decision") or None


# ============================================================================
# Director
# ============================================================================

class DirectorAgent(BaseAgent):
    """
    Director Agent - evaluates student progress at a fixed message cadence.

    Reads: simulation_blueprint, conversation_history.
    Writes: director_state, director_logs.
    """

    default_agent_id = "director"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        blueprint = self.read("simulation_blueprint")
        if not blueprint:
            raise MissingInput("Cannot evaluate: simulation_blueprint is missing")

        history = params.get("conversation_history")
        if history is None:
            history = self.read("conversation_history") or []
        latest_message = params.get("latest_message") or self._latest_student_message(history)

        settings = DirectorSettings.model_validate(blueprint.get("director_settings") or {})
        state = self.read("director_state") or self.initialize_state(blueprint)

        if not self.should_evaluate(state, history, settings):
            return {
                "action": DirectorAction.NONE.value,
                "reasoning": "Not time to evaluate yet",
                "next_evaluation_at": state["last_evaluated_message"] + settings.evaluation_frequency,
            }

        decision = await self.evaluate_progress(blueprint, state, history, latest_message)
        updated_state = self.update_state(state, decision, history)
        self.write("director_state", updated_state)

        decision_data = decision.model_dump(mode="json", exclude_none=True)
        self.write("director_logs", {
            "session_id": self.blackboard.session_id,
            "simulation_id": self.blackboard.simulation_id,
            "message_number": len(history),
            "decision": decision_data,
            "created_at": utc_now(),
        })

        logger.info(
            f"[director] Evaluated at message {len(history)}: phase={decision.phase.value} "
            f"state={decision.student_state.value} action={decision.action.value} error={decision.error}"
        )
        return decision_data

    @staticmethod
    def initialize_state(blueprint: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        goal_progress = {
            goal["id"]: GoalProgress(status=GoalStatus.NOT_STARTED, evidence=[], updated_at=now)
            for goal in blueprint.get("goals", [])
            if isinstance(goal, dict) and goal.get("id")
        }
        state = DirectorState(goal_progress=goal_progress, created_at=now, updated_at=now)
        return state.model_dump(mode="json")

    @staticmethod
    def should_evaluate(state: Dict[str, Any], history: List[Dict[str, Any]], settings: DirectorSettings) -> bool:
        return len(history) - state.get("last_evaluated_message", 0) >= settings.evaluation_frequency

    @staticmethod
    def _latest_student_message(history: List[Dict[str, Any]]) -> str:
        for entry in reversed(history):
            if entry.get("role") == MessageRole.STUDENT.value:
                return entry.get("content", "")
        return ""

    async def evaluate_progress(
        self,
        blueprint: Dict[str, Any],
        state: Dict[str, Any],
        history: List[Dict[str, Any]],
        latest_message: str,
    ) -> DirectorDecision:
        prompt = self.build_evaluation_prompt(blueprint, state, history, latest_message)
        try:
            response = await self.llm_complete_json(
                [
                    {"role": "system", "content": DIRECTOR_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=500,
            )
        except OracleFailure as e:
            logger.error(f"[director] Evaluation failed, recording fallback decision: {e}", exc_info=True)
            return self.fallback_decision(state, e)

        return self.normalize_decision(response, blueprint, state)

    @staticmethod
    def build_evaluation_prompt(
        blueprint: Dict[str, Any],
        state: Dict[str, Any],
        history: List[Dict[str, Any]],
        latest_message: str,
    ) -> str:
        goal_lines = []
        for idx, goal in enumerate(blueprint.get("goals", []), start=1):
            criteria = goal.get("success_criteria") or goal.get("required_evidence") or []
            goal_lines.append(
                f"{idx}. {goal.get('title', goal.get('id'))}: {goal.get('description', '')}\n"
                f"   Success criteria: {', '.join(criteria) if criteria else 'None specified'}"
            )

        recent = history[-RECENT_CONVERSATION_WINDOW:]
        if recent:
            conversation = "\n".join(
                f"{idx}. {'STUDENT' if entry.get('role') == MessageRole.STUDENT.value else 'AI ADVISOR'}: "
                f"{str(entry.get('content', ''))[:CONVERSATION_SNIPPET_CHARS]}"
                for idx, entry in enumerate(recent, start=1)
            )
        else:
            conversation = "No conversation yet"

        return DIRECTOR_EVALUATION_PROMPT.format(
            scenario="\n".join(
                part for part in (blueprint.get("title"), blueprint.get("description")) if part
            ),
            goals="\n".join(goal_lines) or "No goals defined",
            phase=state.get("phase", DirectorPhase.INTRO.value),
            student_state=state.get("student_state", StudentState.ENGAGED.value),
            message_count=len(history),
            latest_message=latest_message,
            recent_conversation=conversation,
        )

    @staticmethod
    def normalize_decision(
        response: Dict[str, Any],
        blueprint: Dict[str, Any],
        state: Dict[str, Any],
    ) -> DirectorDecision:
        """Clamp the oracle's answer onto the closed sets, defaulting from state."""
        current_phase = _coerce_enum(DirectorPhase, state.get("phase"), DirectorPhase.INTRO)
        current_student = _coerce_enum(StudentState, state.get("student_state"), StudentState.ENGAGED)

        action = _coerce_enum(DirectorAction, response.get("action"), DirectorAction.CONTINUE)
        if action == DirectorAction.NONE:
            action = DirectorAction.CONTINUE

        try:
            confidence = float(response.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        confidence = min(1.0, max(0.0, confidence))

        goal_progress = response.get("goal_progress")
        if not isinstance(goal_progress, list):
            goal_progress = []

        suggested = None
        if action == DirectorAction.ENCOUNTER:
            triggered = set(state.get("encounters_triggered", []))
            suggested = [
                e["id"] for e in blueprint.get("encounters", [])
                if isinstance(e, dict) and e.get("id") and e["id"] not in triggered
            ][:MAX_SUGGESTED_ENCOUNTERS]

        intervention = response.get("intervention")
        reasoning = response.get("reasoning")
        return DirectorDecision(
            phase=_coerce_enum(DirectorPhase, response.get("phase"), current_phase),
            student_state=_coerce_enum(StudentState, response.get("student_state"), current_student),
            action=action,
            intervention=str(intervention).strip() if intervention else NO_INTERVENTION,
            goal_progress=[str(g) for g in goal_progress if g],
            confidence=confidence,
            reasoning=str(reasoning) if reasoning else "No reasoning provided",
            suggested_encounters=suggested,
        )

    @staticmethod
    def fallback_decision(state: Dict[str, Any], error: Exception) -> DirectorDecision:
        return DirectorDecision(
            phase=_coerce_enum(DirectorPhase, state.get("phase"), DirectorPhase.INTRO),
            student_state=_coerce_enum(StudentState, state.get("student_state"), StudentState.ENGAGED),
            action=DirectorAction.CONTINUE,
            intervention=NO_INTERVENTION,
            goal_progress=[],
            confidence=0.0,
            reasoning=str(error),
            error=True,
        )

    @staticmethod
    def update_state(
        state: Dict[str, Any],
        decision: DirectorDecision,
        history: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        current = DirectorState.model_validate(state)
        now = utc_now()

        for goal_id in decision.goal_progress:
            progress = current.goal_progress.get(goal_id)
            if progress is not None:
                progress.status = GoalStatus.IN_PROGRESS
                progress.updated_at = now

        if decision.action == DirectorAction.ENCOUNTER and decision.suggested_encounters:
            current.encounters_triggered.append(decision.suggested_encounters[0])

        current.phase = decision.phase
        current.student_state = decision.student_state
        current.message_count = len(history)
        current.last_evaluated_message = len(history)
        current.evaluations.append(
            DirectorEvaluation(message_number=len(history), decision=decision, timestamp=now)
        )
        current.evaluations = current.evaluations[-MAX_EVALUATIONS:]
        current.updated_at = now
        return current.model_dump(mode="json", exclude_none=True)


# ============================================================================
# Actor
# ============================================================================

class ActorAgent(BaseAgent):
    """
    Actor Agent - produces the in-character Socratic reply for one turn.

    Reads: simulation_blueprint, director_state (optional).
    Writes: actor_responses (latest only).
    """

    default_agent_id = "actor"

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        student_message = params.get("student_message")
        if not student_message:
            raise MissingInput("Cannot respond: student_message is required")
        history = params.get("conversation_history") or []

        blueprint = self.read("simulation_blueprint")
        if not blueprint:
            raise MissingInput("Cannot respond: simulation_blueprint is missing")
        director_state = self.read("director_state")

        triggered = self.evaluate_triggers(blueprint.get("triggers", []), history, student_message)
        interventions = self.active_interventions(director_state)
        system_prompt = self.build_system_prompt(blueprint, interventions)
        messages = self.build_messages(system_prompt, history, student_message, triggered, director_state)

        settings = ActorSettings.model_validate(blueprint.get("actor_settings") or {})
        reply = await self.llm_complete(
            messages,
            temperature=settings.temperature,
            max_tokens=settings.max_response_tokens,
        )

        response = ActorResponse(
            message=reply,
            metadata=ActorResponseMetadata(
                triggers_activated=triggered,
                director_interventions=interventions,
            ),
        ).model_dump(mode="json")
        self.write("actor_responses", response)

        if triggered:
            logger.info(f"[actor] Triggers activated: {[t.id for t in triggered]}")
        return response

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    @staticmethod
    def evaluate_triggers(
        triggers: List[Dict[str, Any]],
        history: List[Dict[str, Any]],
        student_message: str,
    ) -> List[ActivatedTrigger]:
        """
        Evaluate keyword and message-count conditions.

        Keyword conditions mention/say/keyword plus quoted terms and fire on a
        case-insensitive substring match. Message-count conditions fire once
        the turn number reaches the stated count. Other phrasings never fire
        here; they reach the model as scenario cues in the system prompt.
        """
        activated: List[ActivatedTrigger] = []
        message_count = len(history) + 1
        message_lower = (student_message or "").lower()

        for trigger in triggers or []:
            if not isinstance(trigger, dict):
                continue
            condition = str(trigger.get("condition") or "")
            kind = _condition_kind(condition)
            fired = False

            if kind == "keyword":
                keywords = [term.lower() for term in QUOTED_TERM.findall(condition)]
                fired = bool(message_lower) and any(kw in message_lower for kw in keywords)
            elif kind == "message_count":
                fired = message_count >= int(NUMBER.search(condition).group(0))

            if fired and trigger.get("effect"):
                activated.append(ActivatedTrigger(
                    id=str(trigger.get("id") or trigger.get("triggerId") or ""),
                    title=trigger.get("title") or "Untitled Trigger",
                    effect=trigger["effect"],
                    condition=condition,
                ))
        return activated

    # ------------------------------------------------------------------
    # Director guidance
    # ------------------------------------------------------------------

    @staticmethod
    def active_interventions(director_state: Optional[Dict[str, Any]]) -> List[str]:
        decision = _latest_decision(director_state)
        if not decision:
            return []

        interventions = []
        intervention = decision.get("intervention")
        if intervention and intervention != NO_INTERVENTION:
            interventions.append(intervention)

        action = decision.get("action")
        if action in ACTION_GUIDANCE:
            interventions.append(ACTION_GUIDANCE[action])
        elif action == DirectorAction.ENCOUNTER.value and decision.get("suggested_encounters"):
            interventions.append(ENCOUNTER_GUIDANCE.format(encounter=decision["suggested_encounters"][0]))
        return interventions

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    def build_system_prompt(self, blueprint: Dict[str, Any], interventions: List[str]) -> str:
        settings = ActorSettings.model_validate(blueprint.get("actor_settings") or {})
        actors = [BlueprintActor.model_validate(a) for a in blueprint.get("actors", [])]
        student_actor = next((a for a in actors if a.is_student_role), None)
        ai_actors = [a for a in actors if not a.is_student_role]

        scenario = blueprint.get("scenario_text") or blueprint.get("description", "")
        sections = [ACTOR_INTRO.format(scenario=scenario)]

        if settings.document_name:
            document = f"SOURCE DOCUMENT: {settings.document_name}"
            if settings.document_instructions:
                document += f"\nDocument Context: {settings.document_instructions}"
            sections.append(document)

        student_role = settings.student_role or (
            (student_actor.role or student_actor.name) if student_actor else None
        )
        if student_role:
            sections.append(f"STUDENT ROLE: {student_role}")

        if ai_actors:
            encounters = [e for e in blueprint.get("encounters", []) if isinstance(e, dict)]
            sections.append("AI CHARACTERS YOU EMBODY:\n" + "\n".join(
                self._describe_actor(actor, encounters) for actor in ai_actors
            ))

        objectives = blueprint.get("objectives") or [
            f"{g.get('title', g.get('id'))}: {g.get('description', '')}"
            for g in blueprint.get("goals", []) if isinstance(g, dict)
        ]
        if objectives:
            sections.append("LEARNING OBJECTIVES:\n" + "\n".join(f"- {o}" for o in objectives))

        rules = []
        for rule in blueprint.get("rules", []):
            if isinstance(rule, str):
                rules.append(rule)
            elif rule.get("title") and rule.get("description"):
                rules.append(f"{rule['title']}: {rule['description']}")
            elif rule.get("description"):
                rules.append(rule["description"])
        if rules:
            sections.append("SOCRATIC METHOD RULES:\n" + "\n".join(f"- {r}" for r in rules))

        cues = self.judgment_cues(blueprint.get("triggers", []))
        if cues:
            sections.append(SCENARIO_CUES_HEADER + "\n" + "\n".join(cues))

        if interventions:
            sections.append("DIRECTOR GUIDANCE:\n" + "\n".join(f"- {i}" for i in interventions))

        mode = settings.ai_mode
        mode_section = f"AI BEHAVIOR MODE: {mode.value.upper()}"
        if mode == AIMode.CUSTOM:
            if settings.custom_instructions:
                mode_section += f"\n{settings.custom_instructions}"
        else:
            mode_section += f"\n{AI_MODE_GUIDANCE[mode.value]}"
        sections.append(mode_section)

        # Always present, whatever the mode
        sections.append(PEDAGOGICAL_RULES)

        complexity = f"COMPLEXITY: {settings.complexity.value}"
        if settings.complexity != ComplexityMode.LINEAR:
            complexity += f"\n{COMPLEXITY_GUIDANCE[settings.complexity.value]}"
        sections.append(complexity)

        sections.append(ACTOR_CLOSING)
        return "\n\n".join(section.strip() for section in sections)

    @staticmethod
    def judgment_cues(triggers: List[Dict[str, Any]]) -> List[str]:
        """Triggers whose conditions need judgment, rendered as condition -> effect lines."""
        cues = []
        for trigger in triggers or []:
            if not isinstance(trigger, dict) or not trigger.get("effect"):
                continue
            condition = str(trigger.get("condition") or "").strip()
            if condition and _condition_kind(condition) is None:
                cues.append(f"- {condition} -> {trigger['effect']}")
        return cues

    @staticmethod
    def _describe_actor(actor: BlueprintActor, encounters: List[Dict[str, Any]]) -> str:
        # Persona details may live on the encounters that feature this actor
        keys = {k.lower() for k in (actor.role, actor.name) if k}
        related = [e for e in encounters if str(e.get("actor_role", "")).lower() in keys]

        personality_mode = actor.personality_mode or next(
            (e.get("personality_mode") for e in related if e.get("personality_mode")), None
        )
        knowledge_level = actor.knowledge_level or next(
            (e.get("knowledge_level") for e in related if e.get("knowledge_level")), None
        )
        hidden_info = list(actor.hidden_info)
        priorities = list(actor.priorities)
        supports = list(actor.loyalties.supports)
        opposes = list(actor.loyalties.opposes)
        for encounter in related:
            hidden_info += [i for i in encounter.get("hidden_info", []) if i not in hidden_info]
            priorities += [p for p in encounter.get("priorities", []) if p not in priorities]
            loyalties = encounter.get("loyalties") or {}
            supports += [s for s in loyalties.get("supports", []) if s not in supports]
            opposes += [o for o in loyalties.get("opposes", []) if o not in opposes]

        header = actor.name or actor.role
        if actor.role and actor.name != actor.role:
            header += f" ({actor.role})"
        if personality_mode:
            header += f" - {personality_mode} personality"
        lines = [f"\n{header}"]

        traits = _format_personality(actor.personality)
        if traits:
            lines.append(f"  Personality: {traits}")
        if actor.description:
            lines.append(f"  Background: {actor.description}")
        if actor.goals:
            lines.append("  Goals:")
            lines.extend(f"    - {goal}" for goal in actor.goals)
        if hidden_info:
            lines.append("  Hidden Information (reveal strategically when relevant):")
            lines.extend(f"    - {info}" for info in hidden_info)
        if supports or opposes:
            lines.append("  Loyalties:")
            if supports:
                lines.append(f"    - Supports: {', '.join(supports)}")
            if opposes:
                lines.append(f"    - Opposes: {', '.join(opposes)}")
        if priorities:
            lines.append("  Priorities (in order):")
            lines.extend(f"    {idx}. {p}" for idx, p in enumerate(priorities, start=1))
        if knowledge_level:
            lines.append(f"  Knowledge level: {knowledge_level}")
        return "\n".join(lines)

    @staticmethod
    def build_messages(
        system_prompt: str,
        history: List[Dict[str, Any]],
        student_message: str,
        triggered: List[ActivatedTrigger],
        director_state: Optional[Dict[str, Any]],
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]

        for entry in history:
            role = entry.get("role")
            if role == MessageRole.STUDENT.value:
                messages.append({"role": "user", "content": entry.get("content", "")})
            elif role in ("ai", MessageRole.AI_ADVISOR.value):
                messages.append({"role": "assistant", "content": entry.get("content", "")})

        if triggered:
            note = "\n".join([TRIGGERS_NOTE_HEADER] + [f"- {t.title}: {t.effect}" for t in triggered])
            messages.append({"role": "system", "content": note})

        decision = _latest_decision(director_state)
        if decision and decision.get("intervention") and decision["intervention"] != NO_INTERVENTION:
            messages.append({
                "role": "system",
                "content": DIRECTOR_NOTE.format(intervention=decision["intervention"]),
            })

        messages.append({"role": "user", "content": student_message})
        return messages


def _format_personality(traits: Dict[str, Any]) -> str:
    """Render personality traits; numeric sliders map to words at the extremes."""
    if not isinstance(traits, dict):
        return ""
    descriptions = [str(traits[k]) for k in ("assertiveness", "cooperation", "formality") if traits.get(k)]

    scale = traits.get("aggressive_passive")
    if isinstance(scale, (int, float)):
        if scale < 30:
            descriptions.append("passive")
        elif scale >= 70:
            descriptions.append("assertive")

    scale = traits.get("cooperative_antagonistic")
    if isinstance(scale, (int, float)):
        if scale < 30:
            descriptions.append("antagonistic")
        elif scale >= 70:
            descriptions.append("cooperative")

    return ", ".join(descriptions)
