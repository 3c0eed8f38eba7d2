import pytest
from fastapi.testclient import TestClient

from api import routes
from api.main import create_app
from src.completion import CompletionError
from src.conversation import ConversationManager
from src.kv_store import MemoryStore
from src.prompt_store import PromptStore


class FakeCompletion:
    model = "fake-model"

    def __init__(self, reply: str = "Try the Mango Pine!"):
        self.reply = reply
        self.fail = False
        self.calls: list[list] = []

    def complete(self, messages) -> str:
        self.calls.append(list(messages))
        if self.fail:
            raise CompletionError("upstream unavailable")
        return self.reply


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    routes._request_log.clear()
    yield
    routes._request_log.clear()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def prompts(store):
    return PromptStore(store)


@pytest.fixture
def manager(store, prompts, completion):
    return ConversationManager(store, prompts, completion)


@pytest.fixture
def app(store, completion):
    return create_app(store=store, completion=completion, website_dir=None)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
