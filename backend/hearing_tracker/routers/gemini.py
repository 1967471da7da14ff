from typing import List, Optional
import logging

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..catalog import SCREENING_STATUSES
from ..db import get_db
from ..gemini_client import GeminiClient
from ..models import AuthUser
from ..settings import settings
from .auth import get_current_user, User

router = APIRouter(prefix="/gemini", tags=["gemini"])
logger = logging.getLogger(__name__)


def consume_generation_quota(db: Session, username: str) -> None:
	"""Count one generation call against the caregiver's limit (429 once exhausted)."""
	row = db.query(AuthUser).filter(AuthUser.username == username).first()
	if row:
		if row.requests_used >= row.requests_limit:
			raise HTTPException(status_code=429, detail="request limit reached")
		row.requests_used += 1
		db.add(row)
		db.commit()


async def generate_clip(prompt: str) -> str:
	client = GeminiClient(model=settings.gemini_tts_model)
	try:
		return await client.generate_speech(prompt)
	finally:
		await client.aclose()


class RecommendationsRequest(BaseModel):
	screeningStatus: str
	ageInMonths: float = Field(ge=0)
	riskFactors: Optional[List[str]] = None


class AudioRequest(BaseModel):
	text: str


@router.post("/recommendations")
async def recommendations(req: RecommendationsRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	from .screening import generate_recommendations

	if req.screeningStatus not in SCREENING_STATUSES:
		raise HTTPException(status_code=422, detail="invalid screeningStatus")
	consume_generation_quota(db, user.username)
	try:
		result = await generate_recommendations(req.screeningStatus, req.ageInMonths, req.riskFactors or [])
	except Exception as e:
		logger.warning("recommendation generation failed: %s", e)
		return {"success": False, "error": "Failed to generate recommendations."}
	return {"success": True, "data": result}


@router.post("/audio")
async def audio(req: AudioRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	text = (req.text or "").strip()
	if not text:
		raise HTTPException(status_code=400, detail="text is required")
	consume_generation_quota(db, user.username)
	try:
		media = await generate_clip(text)
	except Exception as e:
		logger.warning("audio generation failed: %s", e)
		return {"success": False, "error": "Failed to generate audio."}
	return {"success": True, "media": media}
