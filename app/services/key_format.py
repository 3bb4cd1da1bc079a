"""API key format checks and display helpers."""

from typing import Union

from app.ai_service import AIService
from app.exceptions import ValidationError

PREFIX_MAX_LENGTH = 15

# (required leading text, minimum length exclusive) per service
_FORMAT_RULES = {
    AIService.OPENAI: ("sk-", 10),
    AIService.ANTHROPIC: ("sk-ant-", 20),
    AIService.ELEVENLABS: ("", 20),
    AIService.MESHY: ("msy_", 20),
    AIService.FAL: ("", 10),
    AIService.OPENROUTER: ("sk-or-", 20),
}
_DEFAULT_RULE = ("", 10)


def validate_api_key_format(service: Union[AIService, str], api_key: str) -> bool:
    """Check that an API key looks plausible for a service.

    This is a shape check only; it does not contact the provider.

    Args:
        service: Target AI service.
        api_key: Key supplied by the user.

    Returns:
        True if the key has the expected prefix and length.
    """
    if not api_key or not isinstance(api_key, str):
        return False

    try:
        rule = _FORMAT_RULES.get(AIService.parse(service), _DEFAULT_RULE)
    except ValidationError:
        rule = _DEFAULT_RULE

    prefix, min_length = rule
    return api_key.startswith(prefix) and len(api_key) > min_length


def extract_key_prefix(api_key: str) -> str:
    """Return the leading characters of a key for identification in the UI."""
    if not api_key:
        return ""
    if len(api_key) > PREFIX_MAX_LENGTH:
        return api_key[:PREFIX_MAX_LENGTH] + "..."
    return api_key
