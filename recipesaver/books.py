from __future__ import annotations

from typing import Dict, List, Optional, Set

from loguru import logger

from .models import Recipe, User
from .scaling import adjust_multiplier
from .search import filter_recipes
from .storage import RecipeStore, StoreTier


class RecipeBook:
    """A signed-in user's in-memory view of their recipes.

    Loaded once from the store; writes update it from the values the store
    returns. The multiplier and the ingredient checklist belong to the
    recipe currently open and reset when another recipe is opened.
    """

    def __init__(self, user: User, recipes: List[Recipe], tier: StoreTier = StoreTier.REMOTE) -> None:
        self.user = user
        self.recipes = list(recipes)
        self.tier = tier
        self.query = ""
        self.open_recipe_id: Optional[str] = None
        self.multiplier = 1.0
        self.checked: Set[str] = set()

    def filtered(self) -> List[Recipe]:
        return filter_recipes(self.recipes, self.query)

    def get(self, recipe_id: str) -> Recipe:
        for recipe in self.recipes:
            if recipe.id == recipe_id:
                return recipe
        raise KeyError(recipe_id)

    def add(self, recipe: Recipe) -> None:
        self.recipes.insert(0, recipe)

    def replace(self, recipe: Recipe) -> None:
        self.recipes = [recipe if existing.id == recipe.id else existing for existing in self.recipes]

    def open(self, recipe_id: str) -> Recipe:
        recipe = self.get(recipe_id)
        if recipe_id != self.open_recipe_id:
            self.open_recipe_id = recipe_id
            self.multiplier = 1.0
            self.checked = set()
        return recipe

    def adjust(self, delta: float) -> float:
        self.multiplier = adjust_multiplier(self.multiplier, delta)
        return self.multiplier

    def toggle_ingredient(self, ingredient_id: str) -> bool:
        """Flip an ingredient's checklist state and return the new state."""

        if ingredient_id in self.checked:
            self.checked.discard(ingredient_id)
            return False
        self.checked.add(ingredient_id)
        return True


class RecipeBooks:
    """Per-process registry of recipe books keyed by user id."""

    def __init__(self, store: RecipeStore) -> None:
        self._store = store
        self._books: Dict[str, RecipeBook] = {}

    def for_user(self, user: User) -> RecipeBook:
        book = self._books.get(user.id)
        if book is None:
            book = self.reload(user)
        return book

    def reload(self, user: User) -> RecipeBook:
        recipes, tier = self._store.load_with_tier(user.id)
        logger.info("Loaded {} recipes for user {} from {} tier", len(recipes), user.id, tier.value)
        book = RecipeBook(user, recipes, tier)
        self._books[user.id] = book
        return book

    def drop(self, user_id: str) -> None:
        self._books.pop(user_id, None)


__all__ = ["RecipeBook", "RecipeBooks"]
