from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from loguru import logger
from werkzeug.datastructures import MultiDict

from .errors import ExtractionError
from .extraction import ContentExtractor, RecipeInference
from .models import DEFAULT_SERVINGS, Difficulty, Ingredient, Recipe, User, utc_timestamp
from .storage import RecipeStore


DEFAULT_AMOUNT = 1

RECIPE_INSTRUCTION = (
    "Extract recipe information from this content. "
    "If this is not a recipe, return null for title."
)

RECIPE_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": ["string", "null"]},
        "description": {"type": "string"},
        "prepTime": {"type": "number"},
        "cookTime": {"type": "number"},
        "servings": {"type": "number"},
        "difficulty": {"type": "string", "enum": [item.value for item in Difficulty]},
        "ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "amount": {"type": "number"},
                    "unit": {"type": "string"},
                    "notes": {"type": "string"},
                },
            },
        },
        "instructions": {"type": "array", "items": {"type": "string"}},
        "tags": {"type": "array", "items": {"type": "string"}},
        "imageUrl": {"type": "string"},
    },
}

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of ``value`` ("12 min" gives 12)."""

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    match = _INT_PREFIX.match(str(value or ""))
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        # Digit runs past the interpreter's int conversion limit.
        return None


def parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    match = _FLOAT_PREFIX.match(str(value or ""))
    if not match:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None


def _positive_int(value: Any) -> Optional[int]:
    number = parse_int(value)
    return number if number is not None and number > 0 else None


def _amount(value: Any) -> float:
    number = parse_float(value)
    if number is None or number <= 0:
        return DEFAULT_AMOUNT
    return int(number) if number.is_integer() else number


def normalize_tags(tags: Iterable[Any]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def _new_recipe_id() -> str:
    return f"recipe_{uuid.uuid4().hex}"


@dataclass
class IngredientInput:
    name: str = ""
    amount: str = ""
    unit: str = ""
    notes: str = ""


@dataclass
class ManualRecipeForm:
    """Manual entry fields as submitted, before any parsing."""

    title: str = ""
    description: str = ""
    prep_time: str = ""
    cook_time: str = ""
    servings: str = str(DEFAULT_SERVINGS)
    difficulty: str = Difficulty.MEDIUM.value
    ingredients: List[IngredientInput] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    tags: str = ""

    @classmethod
    def from_form(cls, form: MultiDict) -> "ManualRecipeForm":
        names = form.getlist("ingredient_name")
        amounts = form.getlist("ingredient_amount")
        units = form.getlist("ingredient_unit")
        notes = form.getlist("ingredient_notes")

        def pick(values: List[str], index: int) -> str:
            return values[index] if index < len(values) else ""

        ingredients = [
            IngredientInput(
                name=name,
                amount=pick(amounts, index),
                unit=pick(units, index),
                notes=pick(notes, index),
            )
            for index, name in enumerate(names)
        ]

        return cls(
            title=form.get("title", "").strip(),
            description=form.get("description", "").strip(),
            prep_time=form.get("prep_time", ""),
            cook_time=form.get("cook_time", ""),
            servings=form.get("servings", str(DEFAULT_SERVINGS)),
            difficulty=form.get("difficulty", Difficulty.MEDIUM.value),
            ingredients=ingredients,
            instructions=form.getlist("instruction"),
            tags=form.get("tags", ""),
        )


class RecipeImporter:
    """Create recipes from a URL or from manual entry and persist them."""

    def __init__(
        self,
        store: RecipeStore,
        extractor: ContentExtractor,
        inference: RecipeInference,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._inference = inference

    def import_from_url(self, url: str, user: User) -> Recipe:
        """Extract a recipe from ``url`` and save it for ``user``.

        Raises :class:`ExtractionError` when the page cannot be read or does
        not describe a recipe; nothing is saved in that case.
        """

        url = url.strip()
        content = self._extractor.extract(url)
        data = self._inference.infer(content, RECIPE_INSTRUCTION, RECIPE_SCHEMA)

        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.info("No recipe found at {}", url)
            raise ExtractionError("No recipe found at this URL")

        servings = _positive_int(data.get("servings")) or DEFAULT_SERVINGS
        raw_ingredients = data.get("ingredients")
        raw_instructions = data.get("instructions")
        raw_tags = data.get("tags")

        ingredients = [
            item
            for item in (raw_ingredients if isinstance(raw_ingredients, list) else [])
            if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip()
        ]
        now = utc_timestamp()
        recipe = Recipe(
            id=_new_recipe_id(),
            user_id=user.id,
            title=title.strip(),
            description=data.get("description") or "",
            url=url,
            image_url=data.get("imageUrl") or None,
            prep_time=_positive_int(data.get("prepTime")),
            cook_time=_positive_int(data.get("cookTime")),
            servings=servings,
            difficulty=Difficulty.parse(data.get("difficulty")),
            ingredients=[
                Ingredient(
                    id=f"ing_{index}",
                    name=item["name"].strip(),
                    amount=_amount(item.get("amount")),
                    unit=item.get("unit") or "",
                    notes=item.get("notes") or "",
                )
                for index, item in enumerate(ingredients)
            ],
            instructions=[
                step.strip()
                for step in (raw_instructions if isinstance(raw_instructions, list) else [])
                if isinstance(step, str) and step.strip()
            ],
            notes="",
            tags=normalize_tags(raw_tags if isinstance(raw_tags, list) else []),
            created_at=now,
            updated_at=now,
        )

        saved = self._store.save(recipe)
        logger.info("Imported recipe {} for user {} from {}", saved.id, user.id, url)
        return saved

    def import_manual(self, form: ManualRecipeForm, user: User) -> Recipe:
        kept = [item for item in form.ingredients if item.name.strip()]
        now = utc_timestamp()
        recipe = Recipe(
            id=_new_recipe_id(),
            user_id=user.id,
            title=form.title,
            description=form.description,
            prep_time=_positive_int(form.prep_time),
            cook_time=_positive_int(form.cook_time),
            servings=_positive_int(form.servings) or DEFAULT_SERVINGS,
            difficulty=Difficulty.parse(form.difficulty),
            ingredients=[
                Ingredient(
                    id=f"ing_{index}",
                    name=item.name.strip(),
                    amount=_amount(item.amount),
                    unit=item.unit.strip(),
                    notes=item.notes.strip(),
                )
                for index, item in enumerate(kept)
            ],
            instructions=[step.strip() for step in form.instructions if step.strip()],
            notes="",
            tags=normalize_tags(form.tags.split(",")),
            created_at=now,
            updated_at=now,
        )

        saved = self._store.save(recipe)
        logger.info("Saved manual recipe {} for user {}", saved.id, user.id)
        return saved


__all__ = [
    "IngredientInput",
    "ManualRecipeForm",
    "RECIPE_INSTRUCTION",
    "RECIPE_SCHEMA",
    "RecipeImporter",
    "normalize_tags",
    "parse_float",
    "parse_int",
]
