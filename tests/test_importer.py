from __future__ import annotations

import pytest
from werkzeug.datastructures import MultiDict

from conftest import FakeExtractor, FakeInference
from recipesaver.errors import ExtractionError
from recipesaver.importer import (
    RECIPE_INSTRUCTION,
    RECIPE_SCHEMA,
    IngredientInput,
    ManualRecipeForm,
    RecipeImporter,
    parse_float,
    parse_int,
)
from recipesaver.models import Difficulty


PANCAKES = {
    "title": "Fluffy Pancakes",
    "description": "Weekend breakfast",
    "prepTime": 10,
    "cookTime": 15,
    "servings": 2,
    "difficulty": "easy",
    "ingredients": [
        {"name": "Flour", "amount": 200, "unit": "g"},
        {"name": "Milk", "unit": "ml", "notes": "warm"},
        {"name": "", "amount": 3},
    ],
    "instructions": ["Whisk everything.", "  ", "Fry in butter."],
    "tags": ["Breakfast", "breakfast", " Sweet "],
    "imageUrl": "https://example.com/pancakes.jpg",
}


def test_import_from_url_builds_and_saves_recipe(store, remote, user):
    extractor = FakeExtractor(content="Pancake page")
    inference = FakeInference(PANCAKES)
    importer = RecipeImporter(store, extractor, inference)

    recipe = importer.import_from_url(" https://example.com/pancakes ", user)

    assert extractor.urls == ["https://example.com/pancakes"]
    content, instruction, schema = inference.calls[0]
    assert content == "Pancake page"
    assert instruction == RECIPE_INSTRUCTION
    assert schema is RECIPE_SCHEMA

    assert recipe.id.startswith("recipe_")
    assert recipe.user_id == user.id
    assert recipe.url == "https://example.com/pancakes"
    assert recipe.image_url == "https://example.com/pancakes.jpg"
    assert recipe.servings == 2
    assert recipe.difficulty is Difficulty.EASY
    assert [ingredient.id for ingredient in recipe.ingredients] == ["ing_0", "ing_1"]
    assert recipe.ingredients[1].amount == 1
    assert recipe.ingredients[1].notes == "warm"
    assert recipe.instructions == ["Whisk everything.", "Fry in butter."]
    assert recipe.tags == ["breakfast", "sweet"]
    assert recipe.notes == ""
    assert recipe.created_at == recipe.updated_at
    assert recipe.id in remote.records


def test_import_from_url_defaults_missing_fields(store, user):
    importer = RecipeImporter(store, FakeExtractor(), FakeInference({"title": "Soup"}))

    recipe = importer.import_from_url("https://example.com/soup", user)

    assert recipe.servings == 4
    assert recipe.difficulty is Difficulty.MEDIUM
    assert recipe.prep_time is None
    assert recipe.cook_time is None
    assert recipe.ingredients == []
    assert recipe.tags == []


def test_import_from_url_replaces_unknown_difficulty_and_bad_servings(store, user):
    inference = FakeInference({"title": "Stew", "difficulty": "legendary", "servings": 0})
    importer = RecipeImporter(store, FakeExtractor(), inference)

    recipe = importer.import_from_url("https://example.com/stew", user)

    assert recipe.difficulty is Difficulty.MEDIUM
    assert recipe.servings == 4


@pytest.mark.parametrize("result", [{}, {"title": None}, {"title": "   "}, {"description": "A blog post"}])
def test_import_from_url_without_title_is_not_a_recipe(store, remote, fallback, user, result):
    importer = RecipeImporter(store, FakeExtractor(), FakeInference(result))

    with pytest.raises(ExtractionError):
        importer.import_from_url("https://example.com/about", user)

    assert "create_record" not in remote.calls
    assert fallback.writes == 0


def test_import_from_url_propagates_extraction_failure(store, remote, user):
    inference = FakeInference(PANCAKES)
    extractor = FakeExtractor(error=ExtractionError("timeout"))
    importer = RecipeImporter(store, extractor, inference)

    with pytest.raises(ExtractionError):
        importer.import_from_url("https://example.com/slow", user)

    assert inference.calls == []
    assert remote.records == {}


def test_manual_import_drops_empty_ingredients_and_defaults_bad_amounts(store, remote, user):
    form = ManualRecipeForm(
        title="Salted Water",
        ingredients=[
            IngredientInput(name="", amount="2"),
            IngredientInput(name="Salt", amount="abc"),
        ],
    )
    importer = RecipeImporter(store, FakeExtractor(), FakeInference())

    recipe = importer.import_manual(form, user)

    assert len(recipe.ingredients) == 1
    assert recipe.ingredients[0].name == "Salt"
    assert recipe.ingredients[0].amount == 1
    assert recipe.id in remote.records


def test_manual_import_parses_numbers_permissively(store, user):
    form = ManualRecipeForm(
        title="Lasagne",
        prep_time="20 min",
        cook_time="soon",
        servings="zero",
        difficulty="HARD",
        ingredients=[IngredientInput(name=" Pasta ", amount="0.5", unit=" kg ")],
        instructions=["Layer.", "", "   ", "Bake."],
        tags="Italian, dinner, , italian",
    )
    importer = RecipeImporter(store, FakeExtractor(), FakeInference())

    recipe = importer.import_manual(form, user)

    assert recipe.prep_time == 20
    assert recipe.cook_time is None
    assert recipe.servings == 4
    assert recipe.difficulty is Difficulty.HARD
    assert recipe.ingredients[0].name == "Pasta"
    assert recipe.ingredients[0].amount == 0.5
    assert recipe.ingredients[0].unit == "kg"
    assert recipe.instructions == ["Layer.", "Bake."]
    assert recipe.tags == ["italian", "dinner"]


def test_manual_import_falls_back_to_local_cache(store, remote, fallback, user):
    remote.failing = True
    importer = RecipeImporter(store, FakeExtractor(), FakeInference())

    recipe = importer.import_manual(ManualRecipeForm(title="Offline Omelette"), user)

    assert [record["id"] for record in fallback.records] == [recipe.id]


def test_manual_form_reads_repeated_fields():
    form = ManualRecipeForm.from_form(
        MultiDict(
            [
                ("title", "  Tacos "),
                ("servings", "6"),
                ("ingredient_amount", "2"),
                ("ingredient_unit", ""),
                ("ingredient_name", "Tortillas"),
                ("ingredient_notes", ""),
                ("ingredient_amount", "1"),
                ("ingredient_unit", "cup"),
                ("ingredient_name", "Salsa"),
                ("ingredient_notes", "spicy"),
                ("instruction", "Warm tortillas."),
                ("instruction", "Fill."),
            ]
        )
    )

    assert form.title == "Tacos"
    assert form.servings == "6"
    assert form.ingredients[1] == IngredientInput(name="Salsa", amount="1", unit="cup", notes="spicy")
    assert form.instructions == ["Warm tortillas.", "Fill."]


@pytest.mark.parametrize(
    "value, expected",
    [("12", 12), ("12 min", 12), (" 7", 7), ("abc", None), ("", None), (None, None), (3.9, 3)],
)
def test_parse_int(value, expected):
    assert parse_int(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [("1.5", 1.5), (".5", 0.5), ("2 cups", 2.0), ("abc", None), (4, 4.0)],
)
def test_parse_float(value, expected):
    assert parse_float(value) == expected


def test_manual_import_rejects_overflowing_numbers(store, user):
    form = ManualRecipeForm(
        title="Salted Water",
        prep_time="9" * 5000,
        servings="9" * 5000,
        ingredients=[IngredientInput(name="Salt", amount="1e400")],
    )
    importer = RecipeImporter(store, FakeExtractor(), FakeInference())

    recipe = importer.import_manual(form, user)

    assert recipe.prep_time is None
    assert recipe.servings == 4
    assert recipe.ingredients[0].amount == 1


def test_import_from_url_defaults_non_finite_amounts(store, user):
    inference = FakeInference(
        {
            "title": "Broth",
            "ingredients": [
                {"name": "Water", "amount": "1e400"},
                {"name": "Salt", "amount": float("inf")},
            ],
        }
    )
    importer = RecipeImporter(store, FakeExtractor(), inference)

    recipe = importer.import_from_url("https://example.com/broth", user)

    assert [ingredient.amount for ingredient in recipe.ingredients] == [1, 1]


@pytest.mark.parametrize("value", ["1e400", "-1e400", float("inf"), float("nan")])
def test_parse_float_rejects_non_finite(value):
    assert parse_float(value) is None


def test_parse_int_rejects_digit_runs_past_conversion_limit():
    assert parse_int("9" * 5000) is None
