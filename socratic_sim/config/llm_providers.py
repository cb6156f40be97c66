"""
LLM Provider Configuration - BYOK (Bring Your Own Key) Support
Supports OpenAI, OpenRouter, Google Gemini, and Anthropic Claude
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    CLAUDE = "claude"


AGENT_NAMES = ["parser", "sag", "director", "actor", "setup_parser"]


# ============================================================================
# Model Definitions by Provider
# ============================================================================

OPENAI_MODELS: Dict[str, Dict[str, Any]] = {
    "gpt-4o": {
        "name": "GPT-4o",
        "description": "High quality tier for outline generation and student-facing replies",
        "context_window": 128000,
        "max_output": 16384,
        "tier": "quality",
        "recommended_for": ["sag", "actor", "setup_parser"]
    },
    "gpt-4o-mini": {
        "name": "GPT-4o Mini",
        "description": "Fast, cheap tier for extraction and periodic evaluation",
        "context_window": 128000,
        "max_output": 16384,
        "tier": "fast",
        "recommended_for": ["parser", "director"]
    },
    "gpt-4-turbo": {
        "name": "GPT-4 Turbo",
        "description": "Previous generation quality tier",
        "context_window": 128000,
        "max_output": 4096,
        "tier": "quality",
        "recommended_for": ["sag", "actor"]
    },
    "gpt-3.5-turbo": {
        "name": "GPT-3.5 Turbo",
        "description": "Legacy fast tier",
        "context_window": 16385,
        "max_output": 4096,
        "tier": "fast",
        "recommended_for": ["parser", "director"]
    },
}

OPENROUTER_MODELS: Dict[str, Dict[str, Any]] = {
    "openai/gpt-4o": {
        "name": "GPT-4o (via OpenRouter)",
        "description": "OpenAI GPT-4o through OpenRouter",
        "context_window": 128000,
        "max_output": 16384,
        "tier": "quality",
        "recommended_for": ["sag", "actor", "setup_parser"]
    },
    "openai/gpt-4o-mini": {
        "name": "GPT-4o Mini (via OpenRouter)",
        "description": "OpenAI GPT-4o Mini through OpenRouter",
        "context_window": 128000,
        "max_output": 16384,
        "tier": "fast",
        "recommended_for": ["parser", "director"]
    },
    "anthropic/claude-3.5-sonnet": {
        "name": "Claude 3.5 Sonnet (via OpenRouter)",
        "description": "Anthropic Claude 3.5 Sonnet through OpenRouter",
        "context_window": 200000,
        "max_output": 8192,
        "tier": "quality",
        "recommended_for": ["actor"]
    },
}

GEMINI_MODELS: Dict[str, Dict[str, Any]] = {
    "gemini-1.5-pro": {
        "name": "Gemini 1.5 Pro",
        "description": "Gemini 1.5 Pro with 2M context",
        "context_window": 2000000,
        "max_output": 8192,
        "tier": "quality",
        "recommended_for": ["sag", "setup_parser"]
    },
    "gemini-1.5-flash": {
        "name": "Gemini 1.5 Flash",
        "description": "Fast and efficient Gemini model",
        "context_window": 1000000,
        "max_output": 8192,
        "tier": "fast",
        "recommended_for": ["parser", "director"]
    },
}

CLAUDE_MODELS: Dict[str, Dict[str, Any]] = {
    "claude-3-5-sonnet-20241022": {
        "name": "Claude 3.5 Sonnet",
        "description": "Strong in-character dialogue",
        "context_window": 200000,
        "max_output": 8192,
        "tier": "quality",
        "recommended_for": ["actor", "sag"]
    },
    "claude-3-5-haiku-20241022": {
        "name": "Claude 3.5 Haiku",
        "description": "Fast and cost-effective Claude model",
        "context_window": 200000,
        "max_output": 8192,
        "tier": "fast",
        "recommended_for": ["director", "parser"]
    },
}


# ============================================================================
# Provider Configuration Models
# ============================================================================

class ProviderConfig(BaseModel):
    """Base configuration for an LLM provider."""
    provider: LLMProvider
    api_key: SecretStr
    base_url: Optional[str] = None
    organization_id: Optional[str] = None
    default_model: str
    enabled: bool = True

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return {}


class OpenAIConfig(ProviderConfig):
    """OpenAI-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENAI
    base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return OPENAI_MODELS


class OpenRouterConfig(ProviderConfig):
    """OpenRouter-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENROUTER
    base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return OPENROUTER_MODELS


class GeminiConfig(ProviderConfig):
    """Google Gemini-specific configuration."""
    provider: LLMProvider = LLMProvider.GEMINI
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    default_model: str = "gemini-1.5-pro"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return GEMINI_MODELS


class ClaudeConfig(ProviderConfig):
    """Anthropic Claude-specific configuration."""
    provider: LLMProvider = LLMProvider.CLAUDE
    base_url: str = "https://api.anthropic.com/v1"
    default_model: str = "claude-3-5-sonnet-20241022"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return CLAUDE_MODELS


# ============================================================================
# Agent Model Assignment
# ============================================================================

class AgentModelConfig(BaseModel):
    """Configuration for which model each agent uses."""
    parser_provider: LLMProvider = LLMProvider.OPENAI
    parser_model: str = "gpt-4o-mini"

    sag_provider: LLMProvider = LLMProvider.OPENAI
    sag_model: str = "gpt-4o"

    director_provider: LLMProvider = LLMProvider.OPENAI
    director_model: str = "gpt-4o-mini"

    actor_provider: LLMProvider = LLMProvider.OPENAI
    actor_model: str = "gpt-4o"

    setup_parser_provider: LLMProvider = LLMProvider.OPENAI
    setup_parser_model: str = "gpt-4o"

    def for_agent(self, agent_name: str) -> tuple:
        """Return (provider, model) for an agent name."""
        if agent_name not in AGENT_NAMES:
            raise ValueError(f"Unknown agent: {agent_name}")
        return getattr(self, f"{agent_name}_provider"), getattr(self, f"{agent_name}_model")


# ============================================================================
# Master Configuration
# ============================================================================

class LLMConfiguration(BaseModel):
    """Master LLM configuration with all providers."""

    # Provider configurations (user provides their own keys)
    openai: Optional[OpenAIConfig] = None
    openrouter: Optional[OpenRouterConfig] = None
    gemini: Optional[GeminiConfig] = None
    claude: Optional[ClaudeConfig] = None

    # Agent-specific model assignments
    agent_models: AgentModelConfig = Field(default_factory=AgentModelConfig)

    # Global settings
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_retries: int = Field(default=2, ge=0, le=10)
    timeout_seconds: int = Field(default=60, ge=5, le=600)

    def get_provider_config(self, provider: LLMProvider) -> Optional[ProviderConfig]:
        """Get configuration for a specific provider."""
        provider_map = {
            LLMProvider.OPENAI: self.openai,
            LLMProvider.OPENROUTER: self.openrouter,
            LLMProvider.GEMINI: self.gemini,
            LLMProvider.CLAUDE: self.claude,
        }
        return provider_map.get(provider)

    def get_enabled_providers(self) -> List[LLMProvider]:
        """Get list of enabled providers."""
        enabled = []
        for provider in LLMProvider:
            config = self.get_provider_config(provider)
            if config and config.enabled:
                enabled.append(provider)
        return enabled

    def validate_agent_models(self) -> List[str]:
        """Validate that all agent models are available from enabled providers."""
        errors = []
        for agent_name in AGENT_NAMES:
            provider, model = self.agent_models.for_agent(agent_name)
            provider_config = self.get_provider_config(provider)
            if not provider_config:
                errors.append(f"{agent_name}: Provider {provider.value} is not configured")
            elif not provider_config.enabled:
                errors.append(f"{agent_name}: Provider {provider.value} is disabled")
            elif model not in provider_config.available_models:
                errors.append(f"{agent_name}: Model {model} not available for {provider.value}")

        return errors


# ============================================================================
# Helper Functions
# ============================================================================

def get_all_models() -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Get all available models grouped by provider."""
    return {
        "openai": OPENAI_MODELS,
        "openrouter": OPENROUTER_MODELS,
        "gemini": GEMINI_MODELS,
        "claude": CLAUDE_MODELS,
    }


def get_models_for_agent(agent_name: str) -> Dict[str, List[str]]:
    """Get recommended models for a specific agent."""
    recommended = {}

    for provider, models in get_all_models().items():
        provider_recommended = [
            model_id for model_id, model_info in models.items()
            if agent_name.lower() in model_info.get("recommended_for", [])
        ]
        if provider_recommended:
            recommended[provider] = provider_recommended

    return recommended


def create_default_config_from_env() -> LLMConfiguration:
    """Create configuration from environment variables."""
    config = LLMConfiguration()

    if os.getenv("OPENAI_API_KEY"):
        config.openai = OpenAIConfig(
            api_key=SecretStr(os.getenv("OPENAI_API_KEY")),
            organization_id=os.getenv("OPENAI_ORG_ID"),
        )

    if os.getenv("OPENROUTER_API_KEY"):
        config.openrouter = OpenRouterConfig(
            api_key=SecretStr(os.getenv("OPENROUTER_API_KEY")),
        )

    if os.getenv("GEMINI_API_KEY"):
        config.gemini = GeminiConfig(
            api_key=SecretStr(os.getenv("GEMINI_API_KEY")),
        )

    if os.getenv("ANTHROPIC_API_KEY"):
        config.claude = ClaudeConfig(
            api_key=SecretStr(os.getenv("ANTHROPIC_API_KEY")),
        )

    if os.getenv("LLM_TIMEOUT_SECONDS"):
        config.timeout_seconds = int(os.getenv("LLM_TIMEOUT_SECONDS"))

    return config
