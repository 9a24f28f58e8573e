from __future__ import annotations

import copy
import json
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "backend"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from microcourse import quiz as quiz_module  # noqa: E402
from microcourse.db import init_db, make_engine  # noqa: E402
from microcourse.deps import get_client_factory, get_store  # noqa: E402
from microcourse.main import app  # noqa: E402
from microcourse.store import MemoryStore, SqlStore  # noqa: E402


def make_question(n: int, correct: int = 1) -> dict[str, Any]:
    return {
        "stemHtml": f"<p>Question {n}?</p>",
        "options": ["A", "B", "C", "D"],
        "correctIndex": correct,
        "rationaleHtml": f"<p>Because of rule {n}.</p>",
    }


def make_draft(question_counts: tuple[int, ...] = (2, 3, 5)) -> dict[str, Any]:
    """Generator output shaped like the AI reply: one module per entry, with that many questions."""
    return {
        "title": "Forklift Safety",
        "estimatedMinutes": 15,
        "modules": [
            {
                "title": f"Module {m}",
                "contentHtml": f"<p>Content for module {m}</p>",
                "learningObjectives": [f"Objective {m}.1", f"Objective {m}.2"],
                "questions": [make_question(m * 10 + q, correct=q % 4) for q in range(count)],
            }
            for m, count in enumerate(question_counts)
        ],
    }


SOP_TEXT = (
    "Standard operating procedure for forklift operation. Inspect the forks, mast and tyres before every shift. "
    "Sound the horn at blind corners and never carry passengers. Park with the forks lowered."
)


class FakeClient:
    """Stands in for CompletionClient; returns a canned reply or raises."""

    def __init__(self, reply: Any = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[dict[str, Any]] = []
        self.closed = False

    async def generate(self, prompt: str, *, system: str | None = None, json_mode: bool = True, max_tokens: int | None = None) -> str:
        self.prompts.append({"prompt": prompt, "system": system, "json_mode": json_mode})
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, str):
            return self.reply
        return json.dumps(self.reply)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def draft() -> dict[str, Any]:
    return copy.deepcopy(make_draft())


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sql_store() -> Iterator[SqlStore]:
    engine = make_engine("sqlite://")
    init_db(engine)
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    try:
        yield SqlStore(session)
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request: pytest.FixtureRequest) -> Any:
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient(reply=make_draft())


@pytest.fixture
def client(fake_client: FakeClient) -> Iterator[TestClient]:
    engine = make_engine("sqlite://")
    init_db(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, future=True)

    def override_store() -> Iterator[SqlStore]:
        db = TestSession()
        try:
            yield SqlStore(db)
        finally:
            db.close()

    app.dependency_overrides[get_store] = override_store
    app.dependency_overrides[get_client_factory] = lambda: (lambda: fake_client)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        quiz_module._sessions.clear()
        engine.dispose()


def login(client: TestClient, email: str) -> dict[str, str]:
    response = client.post("/auth/login", json={"email": email})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
