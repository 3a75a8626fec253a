"""ASGI entry point: uvicorn innkeeper.api.app:app"""

from .factory import create_app

app = create_app()
