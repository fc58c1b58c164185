"""
Multi-Cloud LLM Provider Support

Resolves which model string and credentials a generation backend should use:
- OpenRouter (default)
- OpenAI
- Anthropic
- Google Vertex AI
- Amazon Bedrock
- Microsoft Azure OpenAI

Model strings are produced in litellm format so ``LiteLLMBackend`` can hand
them straight to ``litellm.acompletion``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .core.config import Settings, settings

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    VERTEX = "vertex"
    BEDROCK = "bedrock"
    AZURE = "azure"


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""
    provider: LLMProvider
    model_name: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)

    def completion_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for a litellm completion call."""
        kwargs: Dict[str, Any] = {"model": self.model_name}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.base_url:
            kwargs["api_base"] = self.base_url
        kwargs.update({k: v for k, v in self.extra_params.items() if v is not None})
        return kwargs


# Default model mappings for each provider
DEFAULT_MODELS = {
    LLMProvider.OPENROUTER: "openai/gpt-4o-mini",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-sonnet-4-5-20250929",
    LLMProvider.VERTEX: "gemini-1.5-pro",
    LLMProvider.BEDROCK: "anthropic.claude-3-sonnet-20240229-v1:0",
    LLMProvider.AZURE: "gpt-4o",
}


def get_provider_config(
    provider: Optional[str] = None,
    model_name: Optional[str] = None
) -> ProviderConfig:
    """
    Get configuration for the specified provider.

    Args:
        provider: Provider name (defaults to MODEL_PROVIDER setting)
        model_name: Model name (defaults to MODEL_NAME setting or provider default)

    Returns:
        ProviderConfig with a litellm model string and credentials
    """
    provider_str = (provider or settings.MODEL_PROVIDER or "openrouter").lower()

    try:
        llm_provider = LLMProvider(provider_str)
    except ValueError:
        logger.warning(f"Unknown provider '{provider_str}', falling back to openrouter")
        llm_provider = LLMProvider.OPENROUTER

    final_model = model_name or settings.MODEL_NAME or DEFAULT_MODELS[llm_provider]

    if llm_provider == LLMProvider.OPENROUTER:
        model = final_model if final_model.startswith("openrouter/") else f"openrouter/{final_model}"
        return ProviderConfig(
            provider=llm_provider,
            model_name=model,
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
        )

    elif llm_provider == LLMProvider.OPENAI:
        return ProviderConfig(
            provider=llm_provider,
            model_name=final_model,
            api_key=settings.OPENAI_API_KEY,
        )

    elif llm_provider == LLMProvider.ANTHROPIC:
        model = final_model if final_model.startswith("anthropic/") else f"anthropic/{final_model}"
        return ProviderConfig(
            provider=llm_provider,
            model_name=model,
            api_key=settings.ANTHROPIC_API_KEY,
        )

    elif llm_provider == LLMProvider.VERTEX:
        return ProviderConfig(
            provider=llm_provider,
            model_name=f"vertex_ai/{final_model}",  # litellm format
            extra_params={
                "vertex_project": settings.GOOGLE_PROJECT_ID,
                "vertex_location": settings.GOOGLE_LOCATION,
                "vertex_credentials": settings.GOOGLE_APPLICATION_CREDENTIALS,
            }
        )

    elif llm_provider == LLMProvider.BEDROCK:
        return ProviderConfig(
            provider=llm_provider,
            model_name=f"bedrock/{final_model}",  # litellm format
            extra_params={
                "aws_region_name": settings.AWS_REGION,
                "aws_access_key_id": settings.AWS_ACCESS_KEY_ID,
                "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY,
            }
        )

    # Azure uses deployment name in the model field
    deployment = settings.AZURE_OPENAI_DEPLOYMENT or final_model
    return ProviderConfig(
        provider=llm_provider,
        model_name=f"azure/{deployment}",  # litellm format
        api_key=settings.AZURE_OPENAI_API_KEY,
        base_url=settings.AZURE_OPENAI_ENDPOINT,
        extra_params={
            "api_version": settings.AZURE_OPENAI_API_VERSION,
        }
    )


# Settings each provider needs before a call can succeed; Bedrock may use an IAM role
REQUIRED_SETTINGS = {
    LLMProvider.OPENROUTER: ("OPENROUTER_API_KEY",),
    LLMProvider.OPENAI: ("OPENAI_API_KEY",),
    LLMProvider.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    LLMProvider.VERTEX: ("GOOGLE_PROJECT_ID",),
    LLMProvider.BEDROCK: (),
    LLMProvider.AZURE: ("AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT"),
}


def validate_provider_config(provider: str, config: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Check that the settings a provider needs are present.

    Args:
        provider: Provider name to validate
        config: Settings to check (defaults to the global settings)

    Returns:
        Dict with 'valid', the 'missing' setting names and the 'provider'
    """
    provider_str = provider.lower()
    try:
        required = REQUIRED_SETTINGS[LLMProvider(provider_str)]
    except ValueError:
        return {"valid": False, "missing": [], "provider": provider_str}

    config = config or settings
    missing = [name for name in required if not getattr(config, name)]
    return {"valid": not missing, "missing": missing, "provider": provider_str}


def list_available_providers() -> Dict[str, Dict[str, Any]]:
    """Configuration status and default model of every provider."""
    overview = {}
    for llm_provider in LLMProvider:
        status = validate_provider_config(llm_provider.value)
        overview[llm_provider.value] = {
            "configured": status["valid"],
            "missing_config": status["missing"],
            "default_model": DEFAULT_MODELS[llm_provider],
        }
    return overview
