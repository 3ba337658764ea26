"""ASGI entry point: `uvicorn appcore.asgi:app`."""

from appcore.api.main import create_app

app = create_app()
