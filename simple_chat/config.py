"""Service configuration."""

import os
from dataclasses import dataclass, field
from typing import Dict

from dotenv import load_dotenv

from .models import ServiceConfig


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("SIMPLE_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("SIMPLE_PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # OpenAI
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview"))
    openai_base_url: str = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", "https://api.openai.com"))

    # Anthropic
    anthropic_api_key: str = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""))
    anthropic_model: str = field(default_factory=lambda: os.getenv("ANTHROPIC_MODEL", "claude-3-opus-20240229"))
    anthropic_base_url: str = field(default_factory=lambda: os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com"))
    anthropic_version: str = field(default_factory=lambda: os.getenv("ANTHROPIC_VERSION", "2023-06-01"))

    # Shared sampling settings
    temperature: float = field(default_factory=lambda: float(os.getenv("AI_TEMPERATURE", "0.7")))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("AI_MAX_TOKENS", "2048")))

    # Provider selection
    default_service: str = field(default_factory=lambda: os.getenv("DEFAULT_AI_SERVICE", "openai"))
    use_mock: bool = field(default_factory=lambda: _env_bool("AI_USE_MOCK"))

    # Timeouts (seconds)
    request_timeout: float = field(default_factory=lambda: float(os.getenv("AI_REQUEST_TIMEOUT", "60")))
    mock_chunk_delay: float = field(default_factory=lambda: float(os.getenv("MOCK_CHUNK_DELAY", "0.05")))

    def service_configs(self) -> Dict[str, ServiceConfig]:
        """Per-provider settings keyed by provider id."""
        return {
            "openai": ServiceConfig(
                api_key=self.openai_api_key,
                model=self.openai_model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                base_url=self.openai_base_url,
            ),
            "anthropic": ServiceConfig(
                api_key=self.anthropic_api_key,
                model=self.anthropic_model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                base_url=self.anthropic_base_url,
            ),
        }

    def has_credentials(self) -> bool:
        """True when at least one real provider has an API key."""
        return any(c.api_key for c in self.service_configs().values())

    def validate_default_service(self) -> bool:
        """Check that the preferred default provider has an API key."""
        service = self.service_configs().get(self.default_service)
        return bool(service and service.api_key)


# Global config instance, with .env values applied first
load_dotenv()
config = Config()
