import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    # LLM provider configuration
    OPENAI_API_KEY: str | None = None
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_BASE_URL: str = Field(default="https://openrouter.ai/api/v1")
    ANTHROPIC_API_KEY: str | None = None

    MODEL_PROVIDER: str = Field(default="openrouter")
    MODEL_NAME: str = Field(default="gpt-4o-mini")

    # Google Vertex AI
    GOOGLE_PROJECT_ID: str | None = Field(default=None, description="Google Cloud project ID for Vertex AI")
    GOOGLE_LOCATION: str = Field(default="us-central1", description="Google Cloud region for Vertex AI")
    GOOGLE_APPLICATION_CREDENTIALS: str | None = Field(default=None, description="Path to service account JSON")

    # Amazon Bedrock
    AWS_REGION: str = Field(default="us-east-1", description="AWS region for Bedrock")
    AWS_ACCESS_KEY_ID: str | None = Field(default=None, description="AWS access key (optional if using IAM role)")
    AWS_SECRET_ACCESS_KEY: str | None = Field(default=None, description="AWS secret key")

    # Microsoft Azure OpenAI
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, description="Azure OpenAI API key")
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None, description="Azure OpenAI endpoint URL")
    AZURE_OPENAI_API_VERSION: str = Field(default="2024-02-15-preview", description="Azure OpenAI API version")
    AZURE_OPENAI_DEPLOYMENT: str | None = Field(default=None, description="Azure OpenAI deployment name")

    # Generation defaults
    GENERATION_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature for every agent call")
    GENERATION_MAX_TOKENS: int = Field(default=16384, description="Max output tokens per backend call")

    # Generation loop caps
    MAX_CONTINUATIONS: int = Field(default=5, description="Backend calls allowed for a length-truncated response")
    MAX_TOOL_ITERATIONS: int = Field(default=10, description="Conversation turns allowed in the tool loop")

    # Execution log / prompt truncation
    EXECUTION_LOG_TRUNCATE_CHARS: int = Field(default=500, description="Max chars of a logged thinking step or tool result")
    PREVIOUS_OUTPUT_SUMMARY_CHARS: int = Field(default=500, description="Max chars of an agent's own prior narrative")

    # Repository tools
    GITHUB_TOKEN: str | None = Field(default=None, description="Token used by the GitHub repository tools")
    GITHUB_API_URL: str = Field(default="https://api.github.com")
    GITHUB_TIMEOUT_SECONDS: float = Field(default=30.0)

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./crewflow.db")
    DB_ECHO: bool = Field(default=False)

    # Runtime
    CREWFLOW_ENV: str = Field(default="dev")
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    def validate_production_config(self) -> None:
        """Validate provider configuration for production environments.

        Call this at startup so a misconfigured deployment fails before the first run.

        Raises:
            RuntimeError: If no credentials exist for the configured provider
        """
        if self.CREWFLOW_ENV != "production":
            return

        from ..llm_providers import validate_provider_config

        status = validate_provider_config(self.MODEL_PROVIDER, self)
        if status["missing"]:
            raise RuntimeError(
                f"CRITICAL: no credentials configured for provider '{status['provider']}' in production "
                f"(missing {', '.join(status['missing'])})."
            )

        if self.DEBUG:
            logging.getLogger(__name__).warning(
                "WARNING: DEBUG is enabled in production"
            )


settings = Settings()
