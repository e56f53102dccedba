"""Shared fixtures: a real SQLite ledger per test plus fake collaborators."""

from typing import Callable, Optional, Union

import pytest

from whatsapp_ledger.db import close_db, get_session_factory, init_db
from whatsapp_ledger.errors import ClassificationError
from whatsapp_ledger.ledger import ContactResolver, TransactionLedger, UserDirectory
from whatsapp_ledger.llm import IntentClassifier
from whatsapp_ledger.models import ParsedIntent, ReplyButton
from whatsapp_ledger.orchestrator import build_orchestrator


class FakeMessenger:
    """Records every outbound call and hands out sequential message ids"""

    def __init__(self):
        self.sent: list[dict] = []
        self.typing: list[str] = []
        self.read: list[str] = []
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"wamid.out.{self._counter}"

    async def send_message(self, to: str, body: str) -> str:
        message_id = self._next_id()
        self.sent.append({"id": message_id, "to": to, "body": body, "buttons": None})
        return message_id

    async def send_interactive_message(
        self, to: str, body: str, buttons: list[ReplyButton]
    ) -> str:
        message_id = self._next_id()
        self.sent.append({"id": message_id, "to": to, "body": body, "buttons": buttons})
        return message_id

    async def mark_as_read(self, message_id: str) -> None:
        self.read.append(message_id)

    async def send_typing_indicator(self, message_id: str) -> None:
        self.typing.append(message_id)

    @property
    def last(self) -> dict:
        return self.sent[-1]


class ScriptedBackend:
    """Classifier backend answering from a callable, a fixed result or an error"""

    def __init__(
        self,
        name: str = "scripted",
        respond: Union[ParsedIntent, Callable[[str], ParsedIntent], None] = None,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.respond = respond
        self.error = error
        self.calls: list[tuple[str, Optional[dict]]] = []

    async def parse_text(self, text: str, context: Optional[dict] = None) -> ParsedIntent:
        self.calls.append((text, context))
        if self.error is not None:
            raise self.error
        if callable(self.respond):
            return self.respond(text)
        if self.respond is None:
            raise ClassificationError("no scripted answer")
        return self.respond


@pytest.fixture
async def session(tmp_path):
    await init_db(f"sqlite:///{tmp_path / 'ledger.db'}")
    async with get_session_factory()() as session:
        yield session
    await close_db()


@pytest.fixture
def users(session):
    return UserDirectory(session)


@pytest.fixture
def contacts(session):
    return ContactResolver(session)


@pytest.fixture
def ledger(session):
    return TransactionLedger(session)


@pytest.fixture
async def user(users):
    return await users.ensure_exists("919800000001", "Asha")


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def orchestrator(session, messenger, backend):
    return build_orchestrator(
        session, classifier=IntentClassifier([backend]), messenger=messenger
    )
