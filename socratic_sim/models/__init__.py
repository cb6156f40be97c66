"""
Simulation Data Models Module
Pydantic schemas for blackboard values.
"""

from .schemas import (
    ActivatedTrigger,
    ActorResponse,
    ActorResponseMetadata,
    ActorSettings,
    # Enums
    AIMode,
    Assessment,
    BlueprintActor,
    BlueprintMetadata,
    ChallengeType,
    ComplexityMode,
    # Runtime Models
    ConversationEntry,
    DirectorAction,
    DirectorDecision,
    DirectorEvaluation,
    DirectorPhase,
    DirectorSettings,
    DirectorState,
    Encounter,
    Goal,
    GoalProgress,
    GoalStatus,
    LenientModel,
    Lesson,
    Loyalties,
    MessageRole,
    OutlineMetadata,
    ParsedActor,
    ParsedContext,
    # Build Models
    ParsedData,
    Rule,
    ScenarioOutline,
    ScenarioType,
    SessionState,
    SimulationBlueprint,
    SourceDataHashes,
    StudentState,
    Trigger,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
    utc_now,
)

__all__ = [
    "AIMode",
    "ChallengeType",
    "ComplexityMode",
    "DirectorAction",
    "DirectorPhase",
    "GoalStatus",
    "MessageRole",
    "ScenarioType",
    "SessionState",
    "StudentState",
    "LenientModel",
    "ParsedActor",
    "ParsedContext",
    "ParsedData",
    "Goal",
    "Rule",
    "Trigger",
    "Loyalties",
    "Encounter",
    "Lesson",
    "Assessment",
    "OutlineMetadata",
    "ScenarioOutline",
    "ValidationIssue",
    "ValidationWarning",
    "ValidationResult",
    "BlueprintActor",
    "DirectorSettings",
    "ActorSettings",
    "SourceDataHashes",
    "BlueprintMetadata",
    "SimulationBlueprint",
    "ConversationEntry",
    "GoalProgress",
    "DirectorDecision",
    "DirectorEvaluation",
    "DirectorState",
    "ActivatedTrigger",
    "ActorResponseMetadata",
    "ActorResponse",
    "utc_now",
]
