"""Shared fixtures for the backend test modules."""

import pytest

from core.models import Dataset


class FakeLLM:
    """Stands in for app.llm.LLMClient: returns a canned payload or raises."""

    def __init__(self, payload=None, exc=None):
        self.payload = payload
        self.exc = exc
        self.calls = []

    def chat_json(self, system_prompt, user_message):
        self.calls.append((system_prompt, user_message))
        if self.exc is not None:
            raise self.exc
        return self.payload


@pytest.fixture
def sales_dataset():
    """20 days of sales across three regions."""
    regions = ["North", "South", "East"]
    rows = [
        {
            "date": f"2024-01-{i + 1:02d}",
            "region": regions[i % 3],
            "sales": 100.0 + i * 5,
        }
        for i in range(20)
    ]
    return Dataset(headers=["date", "region", "sales"], rows=rows)


@pytest.fixture
def id_only_dataset():
    """A single identifier column and nothing numeric."""
    rows = [{"id": f"C{1001 + i}"} for i in range(50)]
    return Dataset(headers=["id"], rows=rows)


@pytest.fixture
def fake_llm():
    return FakeLLM
