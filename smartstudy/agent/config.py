"""Model settings for the assistant gateway.

One OpenAI-compatible model serves two jobs: reading exam images into
structured questions, and answering as the tutor. Both share the key,
endpoint and model id; each has its own sampling temperature.

Environment:
    LLM_API_KEY / OPENAI_API_KEY: API key (LLM_API_KEY wins).
    LLM_BASE_URL: OpenAI-compatible endpoint, e.g. a local server.
    LLM_MODEL: Vision-capable model id.
    LLM_TUTOR_TEMPERATURE / LLM_EXTRACTION_TEMPERATURE: Sampling overrides.
    LLM_MAX_TOKENS: Reply length cap for both jobs.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_MODEL = "gpt-4o-mini"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name) or default)


class GatewayConfig(BaseModel):
    """Settings shared by question extraction and tutoring.

    Attributes:
        api_key: Provider API key.
        base_url: Custom endpoint, or None for OpenAI.
        model_name: Model id; must accept image input for extraction.
        temperature: Tutor sampling temperature.
        extraction_temperature: Extraction sampling temperature.
        max_tokens: Cap on a single extraction or tutor reply.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY", ""),
        description="Provider API key",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="OpenAI-compatible endpoint; None uses api.openai.com",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL") or DEFAULT_MODEL,
        description="Vision-capable model used for extraction and tutoring",
    )
    temperature: float = Field(
        default_factory=lambda: _env_float("LLM_TUTOR_TEMPERATURE", 0.7),
        ge=0.0,
        le=2.0,
        description="Tutor reply temperature",
    )
    extraction_temperature: float = Field(
        default_factory=lambda: _env_float("LLM_EXTRACTION_TEMPERATURE", 0.1),
        ge=0.0,
        le=2.0,
        description="Image-to-question extraction temperature",
    )
    max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS") or 4096),
        ge=1,
        le=128000,
        description="Maximum tokens per extraction or tutor reply",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Require a non-blank key; the gateway cannot start without one."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )
        return v.strip()


def get_gateway_config() -> GatewayConfig:
    """Build the gateway configuration from the environment.

    Raises:
        pydantic.ValidationError: If no API key is set or a value is out of range.
    """
    return GatewayConfig()
