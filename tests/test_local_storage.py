from __future__ import annotations

import pytest

from conftest import make_recipe
from recipesaver.errors import PersistenceError
from recipesaver.local_storage import JsonFileFallbackStore
from recipesaver.storage import RecipeStore, StoreTier


def test_missing_file_reads_as_empty(tmp_path):
    cache = JsonFileFallbackStore(tmp_path / "missing.json")

    assert cache.get_all() == []


def test_put_all_creates_directories_and_round_trips(tmp_path):
    cache = JsonFileFallbackStore(tmp_path / "nested" / "recipes.json")
    records = [make_recipe().to_dict()]

    cache.put_all(records)

    assert cache.path.exists()
    assert cache.get_all() == records
    assert list(cache.path.parent.glob("*.tmp")) == []


def test_corrupt_file_raises_persistence_error(tmp_path):
    path = tmp_path / "recipes.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonFileFallbackStore(path).get_all()


def test_non_list_payload_raises_persistence_error(tmp_path):
    path = tmp_path / "recipes.json"
    path.write_text('{"recipes": []}', encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonFileFallbackStore(path).get_all()


def test_from_env_uses_configured_path(tmp_path, monkeypatch):
    monkeypatch.setenv("RECIPE_CACHE_PATH", str(tmp_path / "cache.json"))

    assert JsonFileFallbackStore.from_env().path == tmp_path / "cache.json"


def test_store_survives_remote_outage_with_file_cache(tmp_path, remote, user):
    remote.failing = True
    store = RecipeStore(remote, JsonFileFallbackStore(tmp_path / "recipes.json"))

    saved = store.save(make_recipe(user_id=user.id))
    store.update_notes(saved.id, "Halve the sugar")
    recipes, tier = store.load_with_tier(user.id)

    assert tier is StoreTier.LOCAL
    assert [recipe.notes for recipe in recipes] == ["Halve the sugar"]
