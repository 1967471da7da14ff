import logging

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .db import Base, engine
from .settings import settings
from .routers import health, gemini
from .routers import auth
from .routers import catalog
from .routers import infants
from .routers import profile
from .routers import screening
from .routers import milestones
from .routers import risk_factors
from .routers import ling_test
from .routers import reports

logger = logging.getLogger(__name__)

app = FastAPI(title="Infant Hearing Screening Tracker API")
app.include_router(health.router)
app.include_router(gemini.router)
app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(infants.router)
app.include_router(profile.router)
app.include_router(screening.router)
app.include_router(milestones.router)
app.include_router(milestones.checklist_router)
app.include_router(risk_factors.router)
app.include_router(ling_test.router)
app.include_router(reports.router)

# Test sounds at /audio/ling6/<name>.mp3; missing files surface as playback errors
app.mount("/audio", StaticFiles(directory=settings.audio_asset_dir, check_dir=False), name="audio")

@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}

@app.on_event("startup")
async def startup_event():
	Base.metadata.create_all(bind=engine)
	logger.info("database schema ready")
