"""FastAPI entry point for the Rapor gradebook service."""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn

logger = logging.getLogger(__name__)
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.middleware import RequestIdMiddleware
from services.sheet_client import get_sheet_client
from services.state_store import get_state_store
from services.sync_service import get_sync_service, periodic_retry

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: load the school data, run the sync retry loop."""
    client = get_sheet_client()
    await client.start()

    source = await get_state_store().load(client, use_mock=settings.use_mock_data)
    logger.info("School data loaded from %s", source)

    retry_task = asyncio.create_task(periodic_retry(interval_seconds=settings.sync_retry_interval))

    yield

    retry_task.cancel()
    try:
        await retry_task
    except asyncio.CancelledError:
        pass

    # last attempt at queued writes before the client goes away
    await get_sync_service().shutdown()
    await client.close()


app = FastAPI(
    title="Rapor Gradebook",
    description="School gradebook backed by a spreadsheet web service",
    version="1.0.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ── Register routers ────────────────────────────────────────
from api.auth import router as auth_router  # noqa: E402
from api.dashboard import router as dashboard_router  # noqa: E402
from api.grades import router as grades_router  # noqa: E402
from api.health import router as health_router  # noqa: E402
from api.monitoring import router as monitoring_router  # noqa: E402
from api.sessions import router as sessions_router  # noqa: E402
from api.settings import router as settings_router  # noqa: E402
from api.students import router as students_router  # noqa: E402
from api.sync import router as sync_router  # noqa: E402
from api.teachers import router as teachers_router  # noqa: E402

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(grades_router)
app.include_router(sessions_router)
app.include_router(settings_router)
app.include_router(students_router)
app.include_router(teachers_router)
app.include_router(monitoring_router)
app.include_router(dashboard_router)
app.include_router(sync_router)


if __name__ == "__main__":
    # Tokens and the school state live in process memory: always one worker.
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        timeout_keep_alive=120,
    )
