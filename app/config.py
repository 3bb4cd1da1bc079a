"""Application configuration."""

from typing import Dict, List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.ai_service import AIService


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/credentials.db"

    # Encryption (validated at startup by EncryptionService)
    encryption_key: Optional[str] = None

    # Platform fallback keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    meshy_api_key: Optional[str] = None
    fal_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    ai_gateway_api_key: Optional[str] = None

    # Application
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"


# Settings field holding the platform key for each service
PLATFORM_KEY_FIELDS = {
    AIService.OPENAI: "openai_api_key",
    AIService.ANTHROPIC: "anthropic_api_key",
    AIService.ELEVENLABS: "elevenlabs_api_key",
    AIService.MESHY: "meshy_api_key",
    AIService.FAL: "fal_key",
    AIService.OPENROUTER: "openrouter_api_key",
    AIService.AI_GATEWAY: "ai_gateway_api_key",
}


class PlatformKeys:
    """Read-only mapping of AI service to the operator's fallback API key.

    Built once at startup and handed to the services that resolve keys.
    Empty values are treated as not configured.
    """

    def __init__(self, keys: Optional[Dict[AIService, Optional[str]]] = None):
        self._keys: Dict[AIService, str] = {
            AIService.parse(service): key
            for service, key in (keys or {}).items()
            if key
        }

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "PlatformKeys":
        """Collect the platform keys declared on a Settings instance."""
        return cls({
            service: getattr(app_settings, field)
            for service, field in PLATFORM_KEY_FIELDS.items()
        })

    def get(self, service: AIService) -> Optional[str]:
        return self._keys.get(service)

    def has(self, service: AIService) -> bool:
        return service in self._keys

    def configured_services(self) -> List[AIService]:
        return [service for service in AIService if service in self._keys]


settings = Settings()
