"""
Simulation Agents
"""

from .base import (
    BaseAgent,
    ClaudeClient,
    GeminiClient,
    LLMClient,
    OpenAIClient,
    create_llm_client,
    extract_json,
)
from .build_agents import FinalizerAgent, ParserAgent, SAGAgent, ValidatorAgent
from .runtime_agents import ActorAgent, DirectorAgent
from .scenario_analyzer import ScenarioAnalyzer, suggest_parameters, validate_actors

__all__ = [
    "BaseAgent",
    "ClaudeClient",
    "GeminiClient",
    "LLMClient",
    "OpenAIClient",
    "create_llm_client",
    "extract_json",
    "FinalizerAgent",
    "ParserAgent",
    "SAGAgent",
    "ValidatorAgent",
    "ActorAgent",
    "DirectorAgent",
    "ScenarioAnalyzer",
    "suggest_parameters",
    "validate_actors",
]
