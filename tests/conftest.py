import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import core.document_store as document_store
import core.event_log as event_log
import web.backend.deps as deps
from core.document_store import DocumentStore
from core.llm_adapter import BaseLLMAdapter, LLMResponse, reset_llm
from core.week_service import WeekService

USER = "user_alice"
OTHER_USER = "user_bob"

GOOD_CODE = "def add(a, b):\n    return a + b\n"
GOOD_NOTES = "Learned how small pure functions compose."


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Point every runtime file at tmp_path."""
    monkeypatch.setattr(document_store, "STORE_PATH", tmp_path / "store.json")
    monkeypatch.setattr(event_log, "EVENT_LOG_PATH", tmp_path / "event_log.jsonl")
    deps.reset_store()
    reset_llm()
    yield tmp_path
    deps.reset_store()
    reset_llm()


@pytest.fixture
def store():
    return DocumentStore.in_memory()


@pytest.fixture
def service(store):
    return WeekService(db=store)


class FakeLLM(BaseLLMAdapter):
    """Records prompts and answers with a canned, quoted reply."""

    provider = "fake"

    def __init__(self, reply: str = '"Shipped it."', error: Exception = None):
        super().__init__({"model_name": "fake-model"})
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=1000):
        self.calls.append({"prompt": prompt, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model=self.model_name)


@pytest.fixture
def fake_llm():
    return FakeLLM()


def complete_week(service: WeekService, user_id: str = USER, title: str = "Week 1", goal_type: str = "learning"):
    """Create a goal and walk all seven days through completion."""
    goal = service.create_goal(user_id, title, goal_type)
    for day in range(1, 8):
        task = service.create_task(user_id, goal.id, f"Day {day} work")
        service.complete_task(user_id, task.id, GOOD_CODE, GOOD_NOTES)
    return service.goals.get(goal.id)
