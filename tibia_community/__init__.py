"""Application entrypoint.

Lifecycle, fetching, extraction and HTTP handlers live in their own modules.
"""

import logging
import os
from fastapi import FastAPI

from . import routes
from .playwright_manager import lifespan


app = FastAPI(title="Tibia Community API", lifespan=lifespan, redirect_slashes=False)
app.include_router(routes.router)

logger = logging.getLogger("app")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
