from __future__ import annotations

from fastapi import FastAPI

from receptionist.app.config import get_settings
from receptionist.app.routes import router
from receptionist.utils.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, debug=settings.debug)
app.include_router(router)
