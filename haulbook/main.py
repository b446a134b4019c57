from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from haulbook.core.config import settings
from haulbook.core.logging import configure_logging
from haulbook.db.mongo import mongodb
from haulbook.db.session import connect_to_mongo, close_mongo_connection, stores_for
from haulbook.api.v1.api import api_router
from haulbook.services.ledger_watcher import LedgerWatcher
from haulbook.services.wiring import build_services


def start_ledger_watcher(app: FastAPI):
    if not settings.WATCH_LEDGER_CHANGES:
        return
    stores = stores_for(mongodb.db)
    services = build_services(stores)
    watcher = LedgerWatcher(stores["ledger"], services.engine)
    watcher.start()
    app.state.ledger_watcher = watcher


def stop_ledger_watcher(app: FastAPI):
    watcher = getattr(app.state, "ledger_watcher", None)
    if watcher is not None:
        watcher.stop()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    await connect_to_mongo()
    start_ledger_watcher(app)
    yield
    stop_ledger_watcher(app)
    await close_mongo_connection()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"message": "Welcome to Haulbook API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
