"""
Neuroleaf Utilities Package

Contains:
- openai_client: Lazy-initialized OpenAI client and text generation
- json_parsing: Defensive JSON extraction from model output
"""

from neuroleaf.utils.openai_client import AIConfigurationError, AIResponse, generate_text, get_openai_client, reset_client
from neuroleaf.utils.json_parsing import extract_json_object, extract_json_array

__all__ = [
    "AIConfigurationError",
    "AIResponse",
    "generate_text",
    "get_openai_client",
    "reset_client",
    "extract_json_object",
    "extract_json_array",
]
