from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


DEFAULT_SERVINGS = 4


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Any) -> "Difficulty":
        """Return the matching difficulty, falling back to ``MEDIUM``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


@dataclass(frozen=True)
class User:
    """Signed-in user as reported by the authentication collaborator."""

    id: str
    email: str


@dataclass
class Ingredient:
    id: str
    name: str
    amount: float = 1
    unit: str = ""
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "unit": self.unit,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Ingredient":
        return cls(
            id=str(data.get("id", "")),
            name=_text(data.get("name")),
            amount=data.get("amount", 1),
            unit=data.get("unit") or "",
            notes=data.get("notes") or None,
        )


@dataclass
class Recipe:
    """Domain object representing a saved recipe."""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: int = DEFAULT_SERVINGS
    difficulty: Difficulty = Difficulty.MEDIUM
    ingredients: List[Ingredient] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def total_time(self) -> int:
        return (self.prep_time or 0) + (self.cook_time or 0)

    def with_notes(self, notes: str, *, updated_at: Optional[str] = None) -> "Recipe":
        return replace(self, notes=notes, updated_at=updated_at or utc_timestamp())

    def to_dict(self) -> dict:
        """Serialize to the camelCase record shape used by the stores."""

        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "imageUrl": self.image_url,
            "prepTime": self.prep_time,
            "cookTime": self.cook_time,
            "servings": self.servings,
            "difficulty": self.difficulty.value,
            "ingredients": [ingredient.to_dict() for ingredient in self.ingredients],
            "instructions": list(self.instructions),
            "notes": self.notes,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recipe":
        servings = data.get("servings")
        if not isinstance(servings, int) or servings < 1:
            servings = DEFAULT_SERVINGS

        return cls(
            id=str(data["id"]),
            user_id=str(data.get("userId", "")),
            title=_text(data.get("title")),
            description=data.get("description"),
            url=data.get("url"),
            image_url=data.get("imageUrl"),
            prep_time=data.get("prepTime"),
            cook_time=data.get("cookTime"),
            servings=servings,
            difficulty=Difficulty.parse(data.get("difficulty")),
            ingredients=[
                Ingredient.from_dict(item)
                for item in data.get("ingredients") or []
                if isinstance(item, dict)
            ],
            instructions=[_text(step) for step in data.get("instructions") or []],
            notes=data.get("notes"),
            tags=[tag for tag in data.get("tags") or [] if isinstance(tag, str)],
            created_at=_text(data.get("createdAt")),
            updated_at=_text(data.get("updatedAt")),
        )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "DEFAULT_SERVINGS",
    "Difficulty",
    "Ingredient",
    "Recipe",
    "User",
    "utc_timestamp",
]
