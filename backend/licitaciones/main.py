import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from licitaciones.database import SessionLocal, engine
from licitaciones.errors import PersistenceError
from licitaciones.models.base import Base
import licitaciones.models  # noqa: F401 - register Tender and BusinessRules for create_all
from licitaciones.api.endpoints import discovery, rules, tenders
from licitaciones.services import ai_service
from licitaciones.services.file_service import STATIC_PREFIX, UPLOAD_DIR, ObjectStorage, ensure_upload_dir
from licitaciones.services.persistence import PersistenceGateway
from licitaciones.services.tender_store import TenderStore

logger = logging.getLogger(__name__)

CONNECTION_ERROR = "No se pudo conectar con la base de datos."


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = None
    app.state.connection_error = None
    ensure_upload_dir()
    try:
        Base.metadata.create_all(bind=engine)
        store = TenderStore(PersistenceGateway(SessionLocal, ObjectStorage()))
        await store.load()
        app.state.store = store
    except (SQLAlchemyError, PersistenceError) as e:
        logger.error("Startup could not reach the database: %s", e)
        app.state.connection_error = CONNECTION_ERROR
    if ai_service.ai_provider() == "unconfigured":
        logger.warning("OLLAMA_BASE_URL is not set: analysis and metadata extraction are disabled")
    yield


app = FastAPI(title="Licitaciones AI API", version="0.1.0", lifespan=lifespan)

# Serve stored documents at /static/<folder>/<key> so the dashboard can open them
app.mount(STATIC_PREFIX, StaticFiles(directory=str(UPLOAD_DIR), check_dir=False), name="static")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(discovery.router)
app.include_router(tenders.router)
app.include_router(rules.router)


@app.get("/health")
def health():
    """Health check endpoint for load balancers and readiness probes."""
    error = getattr(app.state, "connection_error", None)
    return {
        "status": "error" if error else "ok",
        "service": "licitaciones-backend",
        "ai_provider": ai_service.ai_provider(),
        "connection_error": error,
    }
