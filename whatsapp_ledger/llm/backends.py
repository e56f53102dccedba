"""
Classifier backends.

Every backend turns a message into a ParsedIntent or raises
ClassificationError. None of them returns a made-up result on failure; the
fallback decision belongs to IntentClassifier.
"""

import json
import logging
from typing import Optional, Protocol

import httpx
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from ..config import Settings
from ..errors import ClassificationError
from ..models import ParsedIntent
from .parser import InvalidLLMOutputError, parse_llm_response, validate_parsed_intent
from .prompts import SYSTEM_PROMPT, build_user_prompt, format_prompt

logger = logging.getLogger(__name__)

# Retry configuration for malformed local-model output
MAX_LLM_RETRIES = 2  # Total attempts = 3


class ClassifierBackend(Protocol):
    name: str

    async def parse_text(
        self, text: str, context: Optional[dict] = None
    ) -> ParsedIntent: ...


def create_agent(model: Model | str) -> Agent[None, ParsedIntent]:
    """Create a PydanticAI agent for intent classification."""
    return Agent(
        model=model,
        output_type=ParsedIntent,
        system_prompt=SYSTEM_PROMPT,
        model_settings={"temperature": 0.1},
    )


class AgentBackend:
    """Hosted model behind a PydanticAI agent with structured output"""

    def __init__(self, name: str, model: Model | str):
        self.name = name
        self.agent = create_agent(model)

    async def parse_text(
        self, text: str, context: Optional[dict] = None
    ) -> ParsedIntent:
        try:
            result = await self.agent.run(build_user_prompt(text, context))
        except Exception as e:
            raise ClassificationError(f"{self.name} backend failed: {e}") from e
        return result.output


class LMStudioBackend:
    """Local model served by LM Studio's completions endpoint"""

    name = "lmstudio"

    def __init__(
        self,
        url: str,
        max_retries: int = MAX_LLM_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.max_retries = max_retries
        self.transport = transport

    async def parse_text(
        self, text: str, context: Optional[dict] = None
    ) -> ParsedIntent:
        prompt = format_prompt(text, context)

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(transport=self.transport) as client:
                    response = await client.post(
                        self.url,
                        json={
                            "prompt": prompt,
                            "max_tokens": 300,
                            "temperature": 0.1,
                            "stop": ["<end_of_turn>"],
                        },
                        timeout=60.0,
                    )
                    response.raise_for_status()
            except httpx.HTTPError as e:
                # Network errors are not retriable
                raise ClassificationError(f"LM Studio connection error: {e}") from e

            try:
                response_text = response.json()["choices"][0]["text"]
            except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
                raise ClassificationError(
                    f"Failed to parse LM Studio response: {e}"
                ) from e

            try:
                return validate_parsed_intent(parse_llm_response(response_text))
            except InvalidLLMOutputError as e:
                if attempt >= self.max_retries:
                    raise
                logger.warning(
                    "LM Studio output rejected (attempt %d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    e,
                )

        raise ClassificationError("LM Studio produced no usable output")


def build_backends(settings: Settings) -> list[ClassifierBackend]:
    """Instantiate the configured backends in order, skipping unusable ones."""
    backends: list[ClassifierBackend] = []

    for name in settings.classifier_backend_list:
        if name == "openai":
            if not settings.openai_api_key:
                logger.warning("OPENAI_API_KEY is not set, skipping openai backend")
                continue
            model = OpenAIChatModel(
                settings.openai_model,
                provider=OpenAIProvider(api_key=settings.openai_api_key),
            )
            backends.append(AgentBackend("openai", model))
        elif name == "gemini":
            if not settings.gemini_api_key:
                logger.warning("GEMINI_API_KEY is not set, skipping gemini backend")
                continue
            model = GoogleModel(
                settings.gemini_model,
                provider=GoogleProvider(api_key=settings.gemini_api_key),
            )
            backends.append(AgentBackend("gemini", model))
        elif name == "lmstudio":
            backends.append(LMStudioBackend(settings.lm_studio_url))
        else:
            logger.warning("Unknown classifier backend '%s', skipping", name)

    return backends
