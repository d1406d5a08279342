from __future__ import annotations

from pathlib import Path
import sys
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipesaver.errors import PersistenceError
from recipesaver.models import Difficulty, Ingredient, Recipe, User
from recipesaver.storage import RecipeStore


class InMemoryRemoteStore:
    """Remote store double holding encoded records in a dict."""

    def __init__(self) -> None:
        self.records: Dict[str, dict] = {}
        self.failing = False
        self.calls: List[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.failing:
            raise PersistenceError("remote store unavailable")

    def list_records(self, user_id: str):
        self._check("list_records")
        matching = [record for record in self.records.values() if record["userId"] == user_id]
        return sorted(matching, key=lambda record: record["createdAt"], reverse=True)

    def create_record(self, record: dict) -> dict:
        self._check("create_record")
        self.records[record["id"]] = dict(record)
        return dict(record)

    def update_record(self, recipe_id: str, fields: dict) -> dict:
        self._check("update_record")
        if recipe_id not in self.records:
            raise KeyError(recipe_id)
        self.records[recipe_id].update(fields)
        return dict(self.records[recipe_id])


class InMemoryFallbackStore:
    def __init__(self, records: Optional[List[dict]] = None) -> None:
        self.records: List[dict] = list(records or [])
        self.failing = False
        self.writes = 0

    def get_all(self) -> List[dict]:
        if self.failing:
            raise PersistenceError("local cache unavailable")
        return [dict(record) for record in self.records]

    def put_all(self, records: List[dict]) -> None:
        if self.failing:
            raise PersistenceError("local cache unavailable")
        self.writes += 1
        self.records = [dict(record) for record in records]


class FakeExtractor:
    def __init__(self, content: str = "<recipe page>", error: Optional[Exception] = None) -> None:
        self.content = content
        self.error = error
        self.urls: List[str] = []

    def extract(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.content


class FakeInference:
    def __init__(self, result: Optional[Dict[str, Any]] = None) -> None:
        self.result = result if result is not None else {}
        self.calls: List[tuple] = []

    def infer(self, content: str, instruction: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((content, instruction, schema))
        return self.result


def make_recipe(
    recipe_id: str = "recipe_1",
    *,
    user_id: str = "user-1",
    title: str = "Chocolate Cake",
    created_at: str = "2024-01-01T10:00:00+00:00",
    **overrides: Any,
) -> Recipe:
    values = dict(
        id=recipe_id,
        user_id=user_id,
        title=title,
        description="Rich and moist.",
        servings=8,
        difficulty=Difficulty.EASY,
        ingredients=[
            Ingredient(id="ing_0", name="Flour", amount=2, unit="cups"),
            Ingredient(id="ing_1", name="Sugar", amount=1.5, unit="cups"),
        ],
        instructions=["Mix.", "Bake."],
        tags=["dessert"],
        created_at=created_at,
        updated_at=created_at,
    )
    values.update(overrides)
    return Recipe(**values)


@pytest.fixture
def user() -> User:
    return User(id="user-1", email="cook@example.com")


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def fallback() -> InMemoryFallbackStore:
    return InMemoryFallbackStore()


@pytest.fixture
def store(remote: InMemoryRemoteStore, fallback: InMemoryFallbackStore) -> RecipeStore:
    return RecipeStore(remote, fallback)


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def inference() -> FakeInference:
    return FakeInference()
