import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.auth import router as auth_router
from api.health import router as health_router
from api.users import router as users_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.db.database import SessionLocal
from app.services.refresh_token_ledger import RefreshTokenLedger

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def run_token_sweep() -> int:
    with SessionLocal() as db:
        return RefreshTokenLedger(db, settings).sweep_expired()


async def _sweep_periodically(interval_seconds: int):
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(run_token_sweep)
        except Exception:
            logger.exception("Expired refresh token sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.token_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(_sweep_periodically(settings.token_sweep_interval_seconds))
    yield
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="Smart Meeting Auth API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/")
async def root():
    return {"success": True, "message": "Welcome to Smart Meeting API"}

app.include_router(auth_router)
app.include_router(health_router)
app.include_router(users_router)
