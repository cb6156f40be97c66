"""
Simulation Configuration Module
LLM provider configuration and service settings.
"""

from .app_settings import AppSettings, load_app_settings
from .llm_providers import (
    AGENT_NAMES,
    CLAUDE_MODELS,
    GEMINI_MODELS,
    # Model Definitions
    OPENAI_MODELS,
    OPENROUTER_MODELS,
    AgentModelConfig,
    ClaudeConfig,
    GeminiConfig,
    LLMConfiguration,
    # Enums
    LLMProvider,
    OpenAIConfig,
    OpenRouterConfig,
    # Configuration Models
    ProviderConfig,
    create_default_config_from_env,
    # Helper Functions
    get_all_models,
    get_models_for_agent,
)

__all__ = [
    "AGENT_NAMES",
    "LLMProvider",
    "OPENAI_MODELS",
    "OPENROUTER_MODELS",
    "GEMINI_MODELS",
    "CLAUDE_MODELS",
    "ProviderConfig",
    "OpenAIConfig",
    "OpenRouterConfig",
    "GeminiConfig",
    "ClaudeConfig",
    "AgentModelConfig",
    "LLMConfiguration",
    "get_all_models",
    "get_models_for_agent",
    "create_default_config_from_env",
    "AppSettings",
    "load_app_settings",
]
