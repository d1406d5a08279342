from __future__ import annotations

import json
from enum import Enum
from typing import Iterable, List, Protocol, Tuple

from loguru import logger

from .errors import PersistenceError
from .models import Recipe, utc_timestamp


ENCODED_FIELDS = ("ingredients", "instructions", "tags")


class StoreTier(str, Enum):
    """Which tier answered a read."""

    REMOTE = "remote"
    LOCAL = "local"
    NONE = "none"


class RemoteRecipeStore(Protocol):
    """Protocol describing the remote persistence service.

    Records use the camelCase shape of :meth:`Recipe.to_dict` with the
    ``ingredients``, ``instructions`` and ``tags`` fields held as JSON text.
    Implementations raise :class:`PersistenceError` when the service fails.
    """

    def list_records(self, user_id: str) -> Iterable[dict]:
        """Return the user's records ordered newest first."""

    def create_record(self, record: dict) -> dict:
        """Persist a new record and return the stored representation."""

    def update_record(self, recipe_id: str, fields: dict) -> dict:
        """Apply ``fields`` to a record and return it, or raise :class:`KeyError`."""


class FallbackStore(Protocol):
    """Durable local key-value area holding every user's recipes as one array."""

    def get_all(self) -> List[dict]:
        """Return all stored records."""

    def put_all(self, records: List[dict]) -> None:
        """Replace the stored records."""


def encode_record(recipe: Recipe) -> dict:
    record = recipe.to_dict()
    for name in ENCODED_FIELDS:
        record[name] = json.dumps(record[name])
    return record


def decode_record(record: dict) -> Recipe:
    data = dict(record)
    for name in ENCODED_FIELDS:
        value = data.get(name)
        if isinstance(value, str):
            try:
                data[name] = json.loads(value or "[]")
            except json.JSONDecodeError as exc:
                raise PersistenceError(
                    f"Recipe '{data.get('id')}' has malformed {name}."
                ) from exc
        elif value is None:
            data[name] = []
    try:
        return Recipe.from_dict(data)
    except (KeyError, TypeError, AttributeError) as exc:
        raise PersistenceError(f"Malformed recipe record: {exc}") from exc


def _newest_first(recipes: Iterable[Recipe]) -> List[Recipe]:
    return sorted(recipes, key=lambda recipe: recipe.created_at, reverse=True)


class RecipeStore:
    """Two-tier recipe store: a remote service with a local fallback cache.

    Reads and writes go to the remote store first. When it fails, the local
    cache is used instead. The cache is a degraded-mode mirror, not a
    replica: nothing is reconciled once the remote store recovers, so a
    recipe saved while the remote store was down is only visible on reads
    that are themselves served by the cache. Local writes rewrite the whole
    collection without any isolation, so concurrent writers can overwrite
    each other.
    """

    def __init__(self, remote: RemoteRecipeStore, fallback: FallbackStore) -> None:
        self._remote = remote
        self._fallback = fallback

    def load(self, user_id: str) -> List[Recipe]:
        recipes, _ = self.load_with_tier(user_id)
        return recipes

    def load_with_tier(self, user_id: str) -> Tuple[List[Recipe], StoreTier]:
        """Return the user's recipes newest first and the tier that served them.

        Never raises: when both tiers fail an empty list is returned with
        :attr:`StoreTier.NONE`.
        """

        try:
            recipes = [decode_record(record) for record in self._remote.list_records(user_id)]
        except (PersistenceError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Remote load failed for user {}, using local cache: {}", user_id, exc)
        else:
            return _newest_first(recipes), StoreTier.REMOTE

        try:
            records = self._fallback.get_all()
            recipes = [
                Recipe.from_dict(record)
                for record in records
                if record.get("userId") == user_id
            ]
        except (PersistenceError, KeyError, TypeError, AttributeError) as exc:
            logger.opt(exception=exc).error("Local cache load failed for user {}", user_id)
            return [], StoreTier.NONE

        return _newest_first(recipes), StoreTier.LOCAL

    def save(self, recipe: Recipe) -> Recipe:
        try:
            stored = decode_record(self._remote.create_record(encode_record(recipe)))
        except PersistenceError as exc:
            logger.warning("Remote save failed for recipe {}, using local cache: {}", recipe.id, exc)
        else:
            return stored

        records = self._fallback.get_all()
        records.append(recipe.to_dict())
        self._fallback.put_all(records)
        return recipe

    def update_notes(self, recipe_id: str, notes: str) -> Recipe:
        """Set a recipe's notes, stamping ``updatedAt``.

        Raises :class:`PersistenceError` when neither tier holds the recipe
        or both tiers fail.
        """

        updated_at = utc_timestamp()
        try:
            record = self._remote.update_record(
                recipe_id, {"notes": notes, "updatedAt": updated_at}
            )
        except (PersistenceError, KeyError) as exc:
            logger.warning(
                "Remote notes update failed for recipe {}, using local cache: {}", recipe_id, exc
            )
        else:
            return decode_record(record)

        records = self._fallback.get_all()
        for index, record in enumerate(records):
            if record.get("id") == recipe_id:
                break
        else:
            raise PersistenceError(f"Recipe '{recipe_id}' does not exist.")

        updated = Recipe.from_dict(record).with_notes(notes, updated_at=updated_at)
        records[index] = updated.to_dict()
        self._fallback.put_all(records)
        return updated


__all__ = [
    "FallbackStore",
    "RecipeStore",
    "RemoteRecipeStore",
    "StoreTier",
    "decode_record",
    "encode_record",
]
