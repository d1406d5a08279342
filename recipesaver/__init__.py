import os
from functools import wraps
from typing import Callable, Optional

from flask import Flask, flash, g, redirect, render_template, request, url_for
from loguru import logger

from .auth import SessionAuthenticator
from .books import RecipeBook, RecipeBooks
from .errors import ExtractionError, PersistenceError
from .extraction import (
    ContentExtractor,
    HttpContentExtractor,
    OpenAIRecipeInference,
    RecipeInference,
)
from .gcp_storage import FirestoreRecipeStorage
from .importer import ManualRecipeForm, RecipeImporter, parse_float
from .local_storage import JsonFileFallbackStore
from .log import configure_logging
from .models import Difficulty, Recipe, User
from .scaling import MULTIPLIER_STEP, scale_quantity, scale_servings
from .storage import RecipeStore


def create_app(
    store: Optional[RecipeStore] = None,
    *,
    extractor: Optional[ContentExtractor] = None,
    inference: Optional[RecipeInference] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    store:
        Optional recipe store. When ``None`` a :class:`RecipeStore` over
        :class:`FirestoreRecipeStorage` and :class:`JsonFileFallbackStore`
        is configured through environment variables.
    extractor, inference:
        Optional collaborators for URL import. Default to the HTTP extractor
        and the OpenAI inference client.
    """

    configure_logging()

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "development-secret-change-me")

    if store is None:
        store = RecipeStore(FirestoreRecipeStorage.from_env(), JsonFileFallbackStore.from_env())
    if extractor is None:
        extractor = HttpContentExtractor.from_env()
    if inference is None:
        inference = OpenAIRecipeInference.from_env()

    auth = SessionAuthenticator()
    books = RecipeBooks(store)
    importer = RecipeImporter(store, extractor, inference)

    def on_auth_change(user: Optional[User], previous: Optional[User]) -> None:
        if previous is not None:
            books.drop(previous.id)
        if user is not None:
            books.reload(user)

    auth.subscribe(on_auth_change)

    app.config["RECIPE_STORE"] = store
    app.config["RECIPE_BOOKS"] = books
    app.config["AUTHENTICATOR"] = auth
    app.config["RECIPE_IMPORTER"] = importer

    app.add_template_filter(scale_quantity, "scale_quantity")
    app.add_template_global(scale_servings, "scale_servings")
    app.add_template_global(MULTIPLIER_STEP, "multiplier_step")

    def login_required(view: Callable) -> Callable:
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = auth.current_user()
            if user is None:
                return redirect(url_for("login"))
            g.user = user
            g.book = books.for_user(user)
            return view(*args, **kwargs)

        return wrapped

    @app.route("/login", methods=["GET", "POST"])
    def login() -> str:
        if request.method == "POST":
            email = request.form.get("email", "")
            try:
                auth.sign_in(email)
            except ValueError as exc:
                flash(str(exc), "error")
                return redirect(url_for("login"))
            return redirect(url_for("index"))

        if auth.current_user() is not None:
            return redirect(url_for("index"))
        return render_template("login.html", title="Recipe Saver")

    @app.post("/logout")
    def logout() -> str:
        auth.sign_out()
        return redirect(url_for("login"))

    @app.get("/")
    @login_required
    def index() -> str:
        book: RecipeBook = g.book
        if "q" in request.args:
            book.query = request.args.get("q", "")

        recipes = book.filtered()
        return render_template(
            "index.html",
            book=book,
            recipes=recipes,
            query=book.query,
            title="Your Recipes",
        )

    @app.get("/recipes/new")
    @login_required
    def new_recipe() -> str:
        return render_template(
            "add_recipe.html",
            difficulties=list(Difficulty),
            title="Add New Recipe",
        )

    @app.post("/recipes/import")
    @login_required
    def import_recipe() -> str:
        url = request.form.get("url", "").strip()
        if not url:
            flash("Please provide a recipe URL.", "error")
            return redirect(url_for("new_recipe"))

        try:
            recipe = importer.import_from_url(url, g.user)
        except ExtractionError as exc:
            logger.warning("Extraction failed for {}: {}", url, exc)
            flash("Failed to extract recipe from URL. Please try again or add manually.", "error")
            return redirect(url_for("new_recipe"))
        except PersistenceError as exc:
            logger.opt(exception=exc).error("Saving imported recipe failed")
            flash("Failed to save recipe. Please try again.", "error")
            return redirect(url_for("new_recipe"))

        g.book.add(recipe)
        flash(f"Recipe '{recipe.title}' saved.", "success")
        return redirect(url_for("recipe_detail", recipe_id=recipe.id))

    @app.post("/recipes")
    @login_required
    def create_recipe() -> str:
        form = ManualRecipeForm.from_form(request.form)

        if not form.title:
            flash("Please provide a recipe title.", "error")
            return redirect(url_for("new_recipe"))

        try:
            recipe = importer.import_manual(form, g.user)
        except PersistenceError as exc:
            logger.opt(exception=exc).error("Saving manual recipe failed")
            flash("Failed to save recipe. Please try again.", "error")
            return redirect(url_for("new_recipe"))

        g.book.add(recipe)
        flash(f"Recipe '{recipe.title}' saved.", "success")
        return redirect(url_for("recipe_detail", recipe_id=recipe.id))

    @app.get("/recipes/<recipe_id>")
    @login_required
    def recipe_detail(recipe_id: str) -> str:
        book: RecipeBook = g.book
        try:
            recipe = book.open(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        return render_template(
            "recipe_detail.html",
            recipe=recipe,
            multiplier=book.multiplier,
            checked=book.checked,
            editing_notes=request.args.get("edit") == "notes",
            title=recipe.title,
        )

    @app.post("/recipes/<recipe_id>/servings")
    @login_required
    def adjust_servings(recipe_id: str) -> str:
        book: RecipeBook = g.book
        try:
            book.open(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        delta = parse_float(request.form.get("delta"))
        if delta is not None:
            book.adjust(delta)
        return redirect(url_for("recipe_detail", recipe_id=recipe_id))

    @app.post("/recipes/<recipe_id>/ingredients/<ingredient_id>/toggle")
    @login_required
    def toggle_ingredient(recipe_id: str, ingredient_id: str) -> str:
        book: RecipeBook = g.book
        try:
            book.open(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        book.toggle_ingredient(ingredient_id)
        return redirect(url_for("recipe_detail", recipe_id=recipe_id))

    @app.post("/recipes/<recipe_id>/notes")
    @login_required
    def update_notes(recipe_id: str) -> str:
        book: RecipeBook = g.book
        try:
            book.get(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        notes = request.form.get("notes", "").strip()
        try:
            updated = store.update_notes(recipe_id, notes)
        except PersistenceError as exc:
            logger.opt(exception=exc).error("Saving notes for recipe {} failed", recipe_id)
            flash("Failed to save notes. Please try again.", "error")
            return redirect(url_for("recipe_detail", recipe_id=recipe_id))

        book.replace(updated)
        flash("Notes saved.", "success")
        return redirect(url_for("recipe_detail", recipe_id=recipe_id))

    return app


__all__ = ["create_app", "Recipe"]
