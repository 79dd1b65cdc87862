"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from outreach.api.automation import router as automation_router
from outreach.automation.runtime import build_runtime
from outreach.config import get_settings
from outreach.db.session import engine

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, wire the automation core and start the dispatcher."""
    # Import models to register them with SQLModel
    import outreach.models  # noqa: F401
    SQLModel.metadata.create_all(engine)

    runtime = build_runtime(engine, settings)
    app.state.runtime = runtime
    runtime.start()
    try:
        yield
    finally:
        runtime.stop()
        logger.info("Automation runtime stopped")

app = FastAPI(
    title="Outreach Automation API",
    description="Task dispatcher, event log and automation controls",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [origin for origin in {settings.FRONTEND_URL, "http://localhost:3000"} if origin]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(automation_router)


@app.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint with dispatcher status."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        return {"status": "starting"}
    return {"status": "healthy", "dispatcher": runtime.dispatcher.status().to_dict()}
