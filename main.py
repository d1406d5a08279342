"""WSGI entrypoint for the Recipe Saver application.

The Flask development server is not started from this module so that
deployments rely on Gunicorn. Local development can use
``flask --app main run`` which imports the ``app`` object defined below.
"""

from recipesaver import create_app

app = create_app()


__all__ = ["app"]
