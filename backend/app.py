"""Flask application factory wrapper.

Returns the application configured in `main.py` so runners and tests have a
single entry point.
"""

from typing import Any


def create_app(*args: Any, **kwargs: Any):
    # Importing here keeps blueprint registration a side effect of main.
    from main import app  # type: ignore

    return app
