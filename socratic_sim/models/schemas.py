"""
Pydantic data models for the simulation blackboard.
One model per well-known blackboard key, each tolerant of partial LLM output:
nulls, blanks and wrongly-typed values fall back to field defaults, and
unknown fields are carried along for forward compatibility.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> str:
    """ISO-8601 UTC timestamp used across blackboard values."""
    return datetime.now(timezone.utc).isoformat()


_MISSING = object()


def _clean_value(annotation: Any, value: Any) -> Any:
    """Coerce a raw value toward a field annotation, or return _MISSING."""
    origin = get_origin(annotation)

    if origin is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return _clean_value(args[0], value)
        return value

    if origin is list:
        if not isinstance(value, list):
            return _MISSING
        args = get_args(annotation)
        if args and args[0] is str:
            return [str(v).strip() for v in value if v is not None and str(v).strip()]
        return value

    if origin is dict:
        return value if isinstance(value, dict) else _MISSING

    if annotation is str:
        if isinstance(value, str):
            return value if value.strip() else _MISSING
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return _MISSING

    if isinstance(annotation, type) and issubclass(annotation, Enum):
        if isinstance(value, annotation):
            return value
        try:
            return annotation(str(value).strip().lower())
        except ValueError:
            return _MISSING

    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return value if isinstance(value, (dict, BaseModel)) else _MISSING

    return value


class LenientModel(BaseModel):
    """Base model that defaults bad input instead of rejecting it."""

    model_config = ConfigDict(extra="allow")

    @classmethod
    def prepare_input(cls, data: Any) -> Any:
        return data

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    @model_validator(mode="before")
    @classmethod
    def _clean_input(cls, data: Any) -> Any:
        data = cls.prepare_input(data)
        if not isinstance(data, dict):
            return data

        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            info = cls.model_fields.get(key)
            if info is not None:
                value = _clean_value(info.annotation, value)
                if value is _MISSING:
                    continue
            cleaned[key] = value
        return cls.normalize_fields(cleaned)

    def to_blackboard(self) -> Dict[str, Any]:
        """Plain JSON-shaped dict for storage on the blackboard."""
        return self.model_dump(mode="json", exclude_none=True)


ID_PREFIXES = {
    "goals": "goal",
    "rules": "rule",
    "triggers": "trigger",
    "encounters": "encounter",
    "lessons": "lesson",
    "tests": "test",
}


def _clamp(data: Dict[str, Any], key: str, low: float, high: Optional[float], cast: type) -> None:
    """Clamp a numeric setting in place, dropping it when unparseable."""
    if key not in data:
        return
    try:
        value = cast(data[key])
    except (TypeError, ValueError):
        del data[key]
        return
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    data[key] = cast(value)


def _assign_ids(items: Any, prefix: str) -> Any:
    """Give every dict entry a stable positional id when it has none."""
    if not isinstance(items, list):
        return items
    normalized = []
    for index, item in enumerate(items):
        if isinstance(item, BaseModel):
            item = item.model_dump()
        if isinstance(item, str):
            item = {"description": item}
        if not isinstance(item, dict):
            continue
        item = dict(item)
        if not item.get("id"):
            item["id"] = f"{prefix}_{index + 1}"
        normalized.append(item)
    return normalized


# ============================================================================
# Enums
# ============================================================================

class ScenarioType(str, Enum):
    """Closed set of scenario kinds extracted by the parser."""
    CRISIS = "crisis"
    NEGOTIATION = "negotiation"
    STRATEGY = "strategy"
    OPERATIONS = "operations"
    LEADERSHIP = "leadership"
    OTHER = "other"


class ChallengeType(str, Enum):
    ETHICAL_DILEMMA = "ethical_dilemma"
    TECHNICAL_PROBLEM = "technical_problem"
    INTERPERSONAL_CONFLICT = "interpersonal_conflict"
    STRATEGIC_CHOICE = "strategic_choice"


class DirectorPhase(str, Enum):
    INTRO = "intro"
    EXPLORATION = "exploration"
    DECISION = "decision"
    CONCLUSION = "conclusion"


class StudentState(str, Enum):
    ENGAGED = "engaged"
    STUCK = "stuck"
    OFF_TRACK = "off_track"
    READY_TO_ADVANCE = "ready_to_advance"


class DirectorAction(str, Enum):
    NONE = "none"
    CONTINUE = "continue"
    CHALLENGE = "challenge"
    REDIRECT = "redirect"
    ENCOUNTER = "encounter"
    ADVANCE_PHASE = "advance_phase"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MessageRole(str, Enum):
    STUDENT = "student"
    AI_ADVISOR = "ai_advisor"
    SYSTEM = "system"


class AIMode(str, Enum):
    """Actor behavior modes."""
    CHALLENGER = "challenger"
    COACH = "coach"
    EXPERT = "expert"
    ADAPTIVE = "adaptive"
    CUSTOM = "custom"


class ComplexityMode(str, Enum):
    LINEAR = "linear"
    ESCALATING = "escalating"
    ADAPTIVE = "adaptive"


class SessionState(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


# ============================================================================
# Parser output
# ============================================================================

class ParsedActor(LenientModel):
    """A person or role named in the scenario."""
    role: str = "Unknown role"
    name: str = "Unnamed"
    description: str = "No description"

    @classmethod
    def prepare_input(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data, "role": data}
        return data

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        role = data.get("role") or data.get("name")
        name = data.get("name") or data.get("role")
        if role:
            data["role"] = role
        if name:
            data["name"] = name
        return data


class ParsedContext(LenientModel):
    company_name: str = "Not specified"
    situation: str = "No description provided"
    timeframe: str = "Not specified"
    stakes: str = "Not specified"


class ParsedData(LenientModel):
    """Structured extraction of the raw scenario text."""
    scenario_type: ScenarioType = ScenarioType.OTHER
    industry: str = "general"
    context: ParsedContext = Field(default_factory=ParsedContext)
    actors: List[ParsedActor] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    objectives: List[str] = Field(default_factory=list)
    key_challenges: List[str] = Field(default_factory=list)

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        if "actors" in data:
            data["actors"] = [a for a in data["actors"] if isinstance(a, (str, dict, BaseModel))]
        return data


# ============================================================================
# Scenario outline (SAG output)
# ============================================================================

class Goal(LenientModel):
    """An outcome-oriented learning goal."""
    id: str
    title: str = "Untitled Goal"
    description: str = ""
    learning_objective: str = ""
    success_criteria: List[str] = Field(default_factory=list)
    required_evidence: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)

    @classmethod
    def prepare_input(cls, data: Any) -> Any:
        # Structured criteria form: {"required_evidence": [...], ...}
        if isinstance(data, dict) and isinstance(data.get("success_criteria"), dict):
            data = dict(data)
            criteria = data.pop("success_criteria")
            if not data.get("required_evidence"):
                data["required_evidence"] = criteria.get("required_evidence")
            data["success_criteria_detail"] = criteria
        return data


class Rule(LenientModel):
    id: str
    type: str = "constraint"
    title: str = "Untitled Rule"
    description: str = ""
    violation_consequence: str = "Unspecified"


class Trigger(LenientModel):
    """Condition-effect pair evaluated by the Actor each turn."""
    id: str
    title: str = "Untitled Trigger"
    condition: str = ""
    effect: str = ""
    priority: str = "medium"


class Loyalties(LenientModel):
    supports: List[str] = Field(default_factory=list)
    opposes: List[str] = Field(default_factory=list)


class Encounter(LenientModel):
    """A scripted opportunity for a character to challenge the student."""
    id: str
    actor_role: str = "Unknown"
    trigger_condition: str = ""
    purpose: str = ""
    challenge_type: ChallengeType = ChallengeType.STRATEGIC_CHOICE
    personality_mode: str = "neutral"
    knowledge_level: str = "intermediate"
    hidden_info: List[str] = Field(default_factory=list)
    loyalties: Loyalties = Field(default_factory=Loyalties)
    priorities: List[str] = Field(default_factory=list)
    socratic_prompts: List[str] = Field(default_factory=list)

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("socratic_prompts"):
            role = data.get("actor_role") or "this stakeholder"
            data["socratic_prompts"] = [
                f"What does {role} stand to lose if you proceed, and how have you weighed that?"
            ]
        return data


class Lesson(LenientModel):
    id: str
    concept: str = ""
    discovery_path: str = ""
    related_goals: List[str] = Field(default_factory=list)
    misconceptions: List[str] = Field(default_factory=list)


class Assessment(LenientModel):
    """How the Director can tell a goal was achieved."""
    id: str
    goal_id: str = ""
    test_type: str = "decision_quality"
    evaluation_criteria: str = ""


class OutlineMetadata(LenientModel):
    generated_at: str = Field(default_factory=utc_now)
    generator: str = "sag"
    version: str = "1.0"


class ScenarioOutline(LenientModel):
    """Pedagogical arc produced by the Scenario Arc Generator."""
    scenario_id: str = ""
    title: str = ""
    description: str = ""
    actors: List[Dict[str, Any]] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    rules: List[Rule] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)
    encounters: List[Encounter] = Field(default_factory=list)
    lessons: List[Lesson] = Field(default_factory=list)
    tests: List[Assessment] = Field(default_factory=list)
    metadata: OutlineMetadata = Field(default_factory=OutlineMetadata)

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        for key, prefix in ID_PREFIXES.items():
            if key in data:
                data[key] = _assign_ids(data[key], prefix)
        if "actors" in data:
            data["actors"] = [
                {"name": a} if isinstance(a, str) else a
                for a in data["actors"]
                if isinstance(a, (str, dict))
            ]
        return data


# ============================================================================
# Validation result
# ============================================================================

class ValidationIssue(BaseModel):
    source: str
    path: str
    message: str


class ValidationWarning(BaseModel):
    source: str
    severity: str
    field: str
    message: str


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    schema_version: str = "1.0.0"
    validated_at: str = Field(default_factory=utc_now)


# ============================================================================
# Simulation blueprint (Finalizer output)
# ============================================================================

class BlueprintActor(LenientModel):
    """A non-student character the Actor embodies."""
    name: str = "Unnamed Actor"
    role: str = "advisor"
    description: Optional[str] = None
    is_student_role: bool = False
    personality: Dict[str, Any] = Field(default_factory=dict)
    personality_mode: Optional[str] = None
    knowledge_level: Optional[str] = None
    goals: List[str] = Field(default_factory=list)
    hidden_info: List[str] = Field(default_factory=list)
    loyalties: Loyalties = Field(default_factory=Loyalties)
    priorities: List[str] = Field(default_factory=list)

    @classmethod
    def prepare_input(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data


class DirectorSettings(LenientModel):
    evaluation_frequency: int = 3
    narrative_freedom: float = 0.7
    intervention_style: str = "subtle"
    goal_tracking: bool = True

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        _clamp(data, "evaluation_frequency", 1, None, int)
        _clamp(data, "narrative_freedom", 0.0, 1.0, float)
        return data


class ActorSettings(LenientModel):
    socratic_mode: bool = True
    temperature: float = 0.7
    max_response_tokens: int = 500
    personality_traits: Dict[str, Any] = Field(default_factory=dict)
    ai_mode: AIMode = AIMode.CHALLENGER
    complexity: ComplexityMode = ComplexityMode.ESCALATING
    custom_instructions: Optional[str] = None
    student_role: Optional[str] = None
    document_name: Optional[str] = None
    document_instructions: Optional[str] = None

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        _clamp(data, "temperature", 0.0, 2.0, float)
        _clamp(data, "max_response_tokens", 1, 4096, int)
        return data


class SourceDataHashes(BaseModel):
    outline_hash: str
    parsed_data_hash: str
    settings_hash: str


class BlueprintMetadata(LenientModel):
    created_at: str = Field(default_factory=utc_now)
    finalized_by: str = "finalizer"
    builder_version: str = "1.0"
    validation_passed: bool = True
    source_data_hashes: Optional[SourceDataHashes] = None
    finalized_at: str = Field(default_factory=utc_now)


class SimulationBlueprint(LenientModel):
    """Immutable canonical scenario consumed at runtime."""
    scenario_id: str
    title: str = ""
    description: str = ""
    scenario_text: str = ""
    actors: List[BlueprintActor] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    rules: List[Rule] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)
    encounters: List[Encounter] = Field(default_factory=list)
    lessons: List[Lesson] = Field(default_factory=list)
    tests: List[Assessment] = Field(default_factory=list)
    objectives: List[str] = Field(default_factory=list)
    director_settings: DirectorSettings = Field(default_factory=DirectorSettings)
    actor_settings: ActorSettings = Field(default_factory=ActorSettings)
    context: Dict[str, Any] = Field(default_factory=dict)
    metadata: BlueprintMetadata = Field(default_factory=BlueprintMetadata)
    immutable: bool = True
    locked_at: str = Field(default_factory=utc_now)

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        for key, prefix in ID_PREFIXES.items():
            if key in data:
                data[key] = _assign_ids(data[key], prefix)
        return data


# ============================================================================
# Runtime state
# ============================================================================

class ConversationEntry(BaseModel):
    role: MessageRole
    content: str
    timestamp: str = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GoalProgress(BaseModel):
    status: GoalStatus = GoalStatus.NOT_STARTED
    evidence: List[str] = Field(default_factory=list)
    updated_at: str = Field(default_factory=utc_now)


class DirectorDecision(BaseModel):
    phase: DirectorPhase
    student_state: StudentState
    action: DirectorAction
    intervention: str
    goal_progress: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    timestamp: str = Field(default_factory=utc_now)
    suggested_encounters: Optional[List[str]] = None
    error: bool = False


class DirectorEvaluation(BaseModel):
    message_number: int
    decision: DirectorDecision
    timestamp: str = Field(default_factory=utc_now)


class DirectorState(BaseModel):
    """The Director's running assessment of one session."""
    phase: DirectorPhase = DirectorPhase.INTRO
    student_state: StudentState = StudentState.ENGAGED
    message_count: int = 0
    last_evaluated_message: int = 0
    goal_progress: Dict[str, GoalProgress] = Field(default_factory=dict)
    encounters_triggered: List[str] = Field(default_factory=list)
    evaluations: List[DirectorEvaluation] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class ActivatedTrigger(BaseModel):
    id: str
    title: str
    effect: str
    condition: str = ""


class ActorResponseMetadata(BaseModel):
    triggers_activated: List[ActivatedTrigger] = Field(default_factory=list)
    director_interventions: List[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_now)


class ActorResponse(BaseModel):
    """Latest Actor output, overwritten every student turn."""
    message: str
    metadata: ActorResponseMetadata = Field(default_factory=ActorResponseMetadata)
