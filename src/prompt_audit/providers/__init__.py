"""Analysis providers: local Ollama, Anthropic and Google Gemini."""

from .anthropic import AnthropicProvider
from .base import AnalysisProvider, build_user_prompt
from .factory import create_provider
from .google import GoogleProvider
from .ollama import OllamaProvider, detect_batch_strategy
from .schemas import instruction_template_hash, parse_response

__all__ = [
    "AnalysisProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "OllamaProvider",
    "build_user_prompt",
    "create_provider",
    "detect_batch_strategy",
    "instruction_template_hash",
    "parse_response",
]
