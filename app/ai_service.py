"""Supported AI service identifiers."""

from enum import Enum
from typing import Union

from app.exceptions import ValidationError


class AIService(str, Enum):
    """AI providers a user can store a credential for."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    ELEVENLABS = "elevenlabs"
    MESHY = "meshy"
    FAL = "fal"
    OPENROUTER = "openrouter"
    AI_GATEWAY = "ai-gateway"

    @classmethod
    def parse(cls, value: Union["AIService", str]) -> "AIService":
        """Coerce a service name to an AIService.

        Args:
            value: An AIService member or its string value.

        Returns:
            The matching AIService.

        Raises:
            ValidationError: If the name is not a supported service.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(str(value), f"Unsupported AI service: {value}")
