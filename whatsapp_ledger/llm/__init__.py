"""
LLM utilities: prompts, output parsing, backends and the fallback classifier.
"""

from .backends import AgentBackend, LMStudioBackend, build_backends, create_agent
from .classifier import IntentClassifier
from .parser import InvalidLLMOutputError, parse_llm_response, validate_parsed_intent
from .prompts import SYSTEM_PROMPT, build_user_prompt, format_prompt

__all__ = [
    "AgentBackend",
    "IntentClassifier",
    "InvalidLLMOutputError",
    "LMStudioBackend",
    "SYSTEM_PROMPT",
    "build_backends",
    "build_user_prompt",
    "create_agent",
    "format_prompt",
    "parse_llm_response",
    "validate_parsed_intent",
]
