class RecipeSaverError(Exception):
    """Base class for errors raised by the recipe saver."""


class ExtractionError(RecipeSaverError):
    """A recipe could not be extracted from a URL.

    Raised when the page cannot be fetched, the inference service fails, or
    the page does not describe a recipe. No recipe is created.
    """


class PersistenceError(RecipeSaverError):
    """A recipe store could not be read or written."""


__all__ = ["ExtractionError", "PersistenceError", "RecipeSaverError"]
