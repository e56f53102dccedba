"""Tests for classifier backends and the fallback wrapper."""

import json

import httpx
import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, ToolCallPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from conftest import ScriptedBackend
from whatsapp_ledger.config import Settings
from whatsapp_ledger.errors import ClassificationError
from whatsapp_ledger.llm import (
    AgentBackend,
    IntentClassifier,
    InvalidLLMOutputError,
    LMStudioBackend,
    build_backends,
)
from whatsapp_ledger.models import Intent, ParsedIntent


class TestIntentClassifier:
    async def test_falls_back_to_next_backend(self):
        broken = ScriptedBackend("openai", error=ClassificationError("rate limited"))
        working = ScriptedBackend(
            "gemini", respond=ParsedIntent(intent=Intent.CREDIT, amount=500, name="Raju")
        )

        parsed = await IntentClassifier([broken, working]).classify("Gave 500 to Raju")

        assert parsed.intent is Intent.CREDIT
        assert len(broken.calls) == 1
        assert len(working.calls) == 1

    async def test_stops_at_first_success(self):
        first = ScriptedBackend("openai", respond=ParsedIntent(intent=Intent.UNDO))
        second = ScriptedBackend("gemini", respond=ParsedIntent(intent=Intent.CHAT))

        parsed = await IntentClassifier([first, second]).classify("undo")

        assert parsed.intent is Intent.UNDO
        assert second.calls == []

    async def test_all_backends_failing_degrades_to_balance(self):
        backends = [
            ScriptedBackend("openai", error=RuntimeError("boom")),
            ScriptedBackend("gemini", error=ClassificationError("down")),
        ]

        parsed = await IntentClassifier(backends).classify("Gave 500 to Raju")

        assert parsed.intent is Intent.BALANCE
        assert parsed.amount == 0
        assert parsed.name == "Unknown"
        assert parsed.category == "Error"

    async def test_no_backends_degrades(self):
        parsed = await IntentClassifier([]).classify("hi")
        assert parsed.intent is Intent.BALANCE

    async def test_passes_reply_context(self):
        backend = ScriptedBackend(
            respond=ParsedIntent(intent=Intent.UPDATE_TRANSACTION)
        )
        context = {"id": 7, "amount": "500.00", "intent": "CREDIT"}

        await IntentClassifier([backend]).classify("actually 600", context)

        assert backend.calls == [("actually 600", context)]


class TestAgentBackend:
    async def test_structured_output_from_model(self):
        model = TestModel(
            custom_output_args={
                "intent": "DEBIT",
                "amount": 200,
                "name": "Raju",
                "category": "Loan",
            }
        )

        parsed = await AgentBackend("test", model).parse_text("Raju 200 thannu")

        assert parsed.intent is Intent.DEBIT
        assert parsed.amount == 200
        assert parsed.name == "Raju"

    async def test_reply_context_reaches_the_prompt(self):
        prompts = []

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            prompts.append(messages[-1].parts[-1].content)
            args = {"intent": "UPDATE_TRANSACTION", "updated_fields": {"amount": 600}}
            return ModelResponse(parts=[ToolCallPart(info.output_tools[0].name, args)])

        backend = AgentBackend("function", FunctionModel(respond))
        parsed = await backend.parse_text(
            "actually 600", {"id": 7, "amount": "500.00", "intent": "CREDIT"}
        )

        assert parsed.intent is Intent.UPDATE_TRANSACTION
        assert parsed.updated_fields.amount == 600
        assert '"amount": "500.00"' in prompts[0]
        assert "actually 600" in prompts[0]

    async def test_model_failure_raises_classification_error(self):
        def fail(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            raise RuntimeError("quota exceeded")

        with pytest.raises(ClassificationError):
            await AgentBackend("function", FunctionModel(fail)).parse_text("hello")


def completion(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"text": text}]})


class TestLMStudioBackend:
    async def test_retries_malformed_output(self):
        answers = iter(
            [
                completion("Sorry, I cannot help"),
                completion(json.dumps({"intent": "CREDIT", "amount": "Rs 500"})),
            ]
        )
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return next(answers)

        backend = LMStudioBackend(
            "http://lmstudio.test/v1/completions", transport=httpx.MockTransport(handler)
        )
        parsed = await backend.parse_text("Gave 500 to Raju")

        assert parsed.intent is Intent.CREDIT
        assert parsed.amount == 500.0
        assert len(requests) == 2
        assert "Gave 500 to Raju" in requests[0]["prompt"]

    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return completion("no json here")

        backend = LMStudioBackend(
            "http://lmstudio.test/v1/completions",
            max_retries=2,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(InvalidLLMOutputError):
            await backend.parse_text("???")
        assert len(calls) == 3

    async def test_http_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="model not loaded")

        backend = LMStudioBackend(
            "http://lmstudio.test/v1/completions", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(ClassificationError):
            await backend.parse_text("Gave 500 to Raju")
        assert len(calls) == 1


def test_build_backends_skips_missing_keys_and_unknown_names():
    settings = Settings(
        _env_file=None,
        classifier_backends="lmstudio, openai, gemini, bogus",
        openai_api_key="sk-test",
        gemini_api_key=None,
    )

    backends = build_backends(settings)

    assert [backend.name for backend in backends] == ["lmstudio", "openai"]
