"""CORS middleware configuration"""
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import Receive, Scope, Send

from form_plant.config.env_config import settings

EMBED_PATH_PREFIX = "/embed"


class SiteCORSMiddleware(CORSMiddleware):
    """The app-wide CORS policy, except for embed routes which answer per form."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(EMBED_PATH_PREFIX):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def setup_cors(app):
    """
    Configure CORS middleware for the application

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(
        SiteCORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
