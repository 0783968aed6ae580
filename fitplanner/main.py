# ===== fitplanner/main.py =====
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fitplanner.catalog import CatalogCache
from fitplanner.config import get_settings
from fitplanner.database import engine, SessionLocal
from fitplanner.init_test_data import seed_catalog
from fitplanner.models import Base, Exercise
from fitplanner.routes import router

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create the tables, seed if asked, then load the catalog once for the process
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if settings.seed_catalog and db.query(Exercise).count() == 0:
            seed_catalog(db)
        app.state.catalog = CatalogCache.load(db)
    finally:
        db.close()
    logger.info("🚀 fitplanner ready")
    yield


app = FastAPI(title="Fitplanner API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
