from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from cloud_poller.core.database import close_app_database, init_app_database
from cloud_poller.core.logging import setup_logging
from cloud_poller.modules.poller.scheduler import create_scheduler
from cloud_poller.modules.usage.router import router as usage_router

setup_logging()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_app_database()
    scheduler = create_scheduler()
    if scheduler is not None:
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        close_app_database()


app = FastAPI(title="Cloud Usage Poller", lifespan=lifespan)


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


app.include_router(usage_router)
