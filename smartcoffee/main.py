import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager

from smartcoffee.config import get_settings
from smartcoffee.db.database import engine, Base
from smartcoffee.api import users, sleep, brew, device
from smartcoffee.services.scheduler import start_scheduler, shutdown_scheduler

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    problems = settings.validate_device_settings()
    for problem in problems:
        logger.warning(f"Device settings: {problem}")

    start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="Smart Coffee API",
    description="Sleep-driven coffee recommendations and brewing",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(sleep.router, prefix="/sleep", tags=["sleep"])
app.include_router(brew.router, prefix="/brew", tags=["brew"])
app.include_router(device.router, prefix="/device", tags=["device"])


@app.get("/")
async def root():
    return {"message": "Smart Coffee API", "docs": "/docs"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
