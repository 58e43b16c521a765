from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import promptcraft.auth as auth
import promptcraft.prompts_routes as prompts_routes
from promptcraft.auth import get_current_user_id
from promptcraft.config import get_settings
from promptcraft.main import app

USER_ID = "user-123"


def _row(**overrides) -> dict:
    row = {
        "id": "prompt-1",
        "user_id": USER_ID,
        "title": "Text: Write a launch announcement",
        "target_model": "ChatGPT",
        "use_case": "Text",
        "refined_prompt": "Write a launch announcement for our new app.",
        "inputs": {"rough_idea": "launch post"},
        "created_at": "2025-01-02T10:00:00+00:00",
    }
    row.update(overrides)
    return row


class RecordingSupabase:
    """Supabase query builder stand-in that records every call."""

    def __init__(self, rows=None, fail: bool = False):
        self.rows = rows or []
        self.fail = fail
        self.calls: list[tuple] = []
        self.inserted: list[dict] = []
        self._insert_result = None

    def table(self, name):
        self.calls.append(("table", name))
        return self

    def select(self, columns):
        self.calls.append(("select", columns))
        return self

    def eq(self, column, value):
        self.calls.append(("eq", column, value))
        return self

    def ilike(self, column, pattern):
        self.calls.append(("ilike", column, pattern))
        return self

    def order(self, column, desc=False):
        self.calls.append(("order", column, desc))
        return self

    def limit(self, count):
        self.calls.append(("limit", count))
        return self

    def insert(self, record):
        self.inserted.append(record)
        self._insert_result = [{"id": "prompt-new", **record}]
        return self

    def execute(self):
        if self.fail:
            raise ConnectionError("supabase unreachable")
        if self._insert_result is not None:
            data, self._insert_result = self._insert_result, None
            return SimpleNamespace(data=data)
        return SimpleNamespace(data=self.rows)


@pytest.fixture
def fake_store(monkeypatch) -> RecordingSupabase:
    store = RecordingSupabase(rows=[_row(), _row(id="prompt-0", created_at="2025-01-01T10:00:00+00:00")])
    monkeypatch.setattr(prompts_routes, "get_supabase_client", lambda service_role=False: store)
    return store


@pytest.fixture
def client(settings, fake_store) -> TestClient:
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_save_prompt_stores_owner_and_default_title(client: TestClient, fake_store: RecordingSupabase):
    response = client.post(
        "/prompts",
        json={
            "refined_prompt": "You are a senior copywriter. Draft a crisp launch announcement now.",
            "target_model": "ChatGPT",
            "use_case": "Text",
            "inputs": {"rough_idea": "launch post"},
        },
    )

    assert response.status_code == 201
    record = fake_store.inserted[0]
    assert record["user_id"] == USER_ID
    assert record["title"] == "Text: You are a senior copywriter. Draft"
    assert record["created_at"].endswith("+00:00")
    assert response.json()["id"] == "prompt-new"
    assert ("table", "prompts") in fake_store.calls


def test_save_prompt_keeps_explicit_title(client: TestClient, fake_store: RecordingSupabase):
    response = client.post(
        "/prompts",
        json={
            "refined_prompt": "Prompt body",
            "target_model": "Gemini",
            "use_case": "Notes",
            "title": "  Retro summary  ",
        },
    )

    assert response.status_code == 201
    assert fake_store.inserted[0]["title"] == "Retro summary"


def test_default_title_is_truncated():
    title = prompts_routes.default_title("Documentation", " ".join(["supercalifragilistic"] * 6))
    assert len(title) == prompts_routes.TITLE_MAX_LENGTH
    assert title.startswith("Documentation: supercalifragilistic")


def test_save_prompt_rejects_empty_prompt(client: TestClient):
    response = client.post(
        "/prompts",
        json={"refined_prompt": "", "target_model": "ChatGPT", "use_case": "Text"},
    )
    assert response.status_code == 422


def test_list_prompts_applies_filters(client: TestClient, fake_store: RecordingSupabase):
    response = client.get(
        "/prompts",
        params={"search": " launch ", "use_case": "Text", "target_model": "ChatGPT"},
    )

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == ["prompt-1", "prompt-0"]
    assert ("eq", "user_id", USER_ID) in fake_store.calls
    assert ("ilike", "title", "%launch%") in fake_store.calls
    assert ("eq", "use_case", "Text") in fake_store.calls
    assert ("eq", "target_model", "ChatGPT") in fake_store.calls
    assert ("order", "created_at", True) in fake_store.calls
    assert ("limit", prompts_routes.LIST_LIMIT) in fake_store.calls


def test_list_prompts_search_escapes_like_wildcards(client: TestClient, fake_store: RecordingSupabase):
    response = client.get("/prompts", params={"search": "100%_done"})

    assert response.status_code == 200
    assert ("ilike", "title", "%100\\%\\_done%") in fake_store.calls


def test_title_search_pattern_escapes_backslash():
    assert prompts_routes.title_search_pattern("a\\b") == "%a\\\\b%"


def test_list_prompts_without_filters(client: TestClient, fake_store: RecordingSupabase):
    client.get("/prompts")
    assert not any(call[0] == "ilike" for call in fake_store.calls)


def test_export_returns_items_capped_by_limit(client: TestClient, fake_store: RecordingSupabase, settings):
    response = client.get("/prompts/export")

    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 2
    assert items[0]["inputs"] == {"rough_idea": "launch post"}
    assert ("limit", settings.export_limit) in fake_store.calls


def test_store_failure_is_bad_gateway(client: TestClient, fake_store: RecordingSupabase):
    fake_store.fail = True
    response = client.get("/prompts/export")

    assert response.status_code == 502
    assert response.json()["detail"] == "Unable to reach the document store."


def test_templates_are_listed(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        response = TestClient(app).get("/templates")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    ids = [template["id"] for template in response.json()]
    assert "blog-outline" in ids
    assert "sales-email" in ids


class _FakeAuth:
    def __init__(self, user_id=None, error=None):
        self._user_id = user_id
        self._error = error

    def get_user(self, token):
        if self._error:
            raise self._error
        return SimpleNamespace(user=SimpleNamespace(id=self._user_id))


@pytest.fixture
def auth_client(settings, fake_store) -> TestClient:
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_missing_bearer_token_is_unauthorized(auth_client: TestClient):
    response = auth_client.get("/prompts/export")
    assert response.status_code == 401


def test_invalid_token_is_unauthorized(auth_client: TestClient, monkeypatch):
    fake = SimpleNamespace(auth=_FakeAuth(error=ValueError("jwt expired")))
    monkeypatch.setattr(auth, "get_supabase_client", lambda service_role=False: fake)

    response = auth_client.get("/prompts/export", headers={"Authorization": "Bearer stale"})
    assert response.status_code == 401


def test_valid_token_scopes_export_to_user(auth_client: TestClient, fake_store: RecordingSupabase, monkeypatch):
    fake = SimpleNamespace(auth=_FakeAuth(user_id="user-456"))
    monkeypatch.setattr(auth, "get_supabase_client", lambda service_role=False: fake)

    response = auth_client.get("/prompts/export", headers={"Authorization": "Bearer good"})

    assert response.status_code == 200
    assert ("eq", "user_id", "user-456") in fake_store.calls


def test_bearer_token_parsing():
    assert auth.bearer_token("Bearer abc") == "abc"
    assert auth.bearer_token("Basic abc") is None
    assert auth.bearer_token("Bearer   ") is None
    assert auth.bearer_token(None) is None
