"""ASGI entry point: ``uvicorn myrecipes.main:app``.

Reads configuration from the environment once, here, and nowhere else.
"""

from .app import create_app
from .config import Settings

app = create_app(Settings.from_env())
