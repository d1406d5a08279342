from __future__ import annotations

from typing import List, Sequence

from .models import Recipe


def filter_recipes(recipes: Sequence[Recipe], query: str) -> List[Recipe]:
    """Return the recipes matching ``query``, keeping their order.

    A recipe matches when the query appears, ignoring case, in its title,
    description, any ingredient name or any tag. A blank query matches
    everything.
    """

    if not query or not query.strip():
        return list(recipes)

    needle = query.lower()
    return [recipe for recipe in recipes if _matches(recipe, needle)]


def _matches(recipe: Recipe, needle: str) -> bool:
    if needle in recipe.title.lower():
        return True
    if recipe.description and needle in recipe.description.lower():
        return True
    if any(needle in ingredient.name.lower() for ingredient in recipe.ingredients):
        return True
    return any(needle in tag.lower() for tag in recipe.tags)


__all__ = ["filter_recipes"]
