"""
Screening status and AI recommendations.

The recommendation prompt combines the screening status, the infant's age in
months (from the profile's date of birth) and the selected risk factors. The
model is asked for a JSON object with ``recommendations`` and
``reminderNeeded``; both are merged into the owner's screening record.
"""

from __future__ import annotations
import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..catalog import SCREENING_STATUSES
from ..db import get_db
from ..gemini_client import GeminiClient, GenerationError
from ..store import DocumentStore, PROFILES, SCREENINGS, StoreError, utc_timestamp
from ..sync import get_record_cache
from .auth import User, get_current_user
from .gemini import consume_generation_quota

router = APIRouter(prefix="/screening", tags=["screening"])
logger = logging.getLogger(__name__)


class ScreeningUpdate(BaseModel):
	screeningStatus: str


def age_in_months(dob: date, today: Optional[date] = None) -> int:
	"""Whole calendar months between ``dob`` and ``today`` (never negative)."""
	today = today or date.today()
	months = (today.year - dob.year) * 12 + (today.month - dob.month)
	if today.day < dob.day:
		months -= 1
	return max(0, months)


def _parse_dob(value: Any) -> Optional[date]:
	if not value:
		return None
	try:
		return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
	except ValueError:
		return None


def _extract_json_object(text: str) -> Dict[str, Any]:
	"""Pull a JSON object out of a model reply (raw, fenced, or embedded in prose)."""
	try:
		return json.loads(text)
	except Exception:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except Exception:
			pass
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last > first:
		try:
			return json.loads(text[first : last + 1])
		except Exception:
			pass
	raise GenerationError("LLM did not return valid JSON.")


def _build_recommendations_prompt(status: str, age_months: float, risk_factors: List[str]) -> str:
	if risk_factors:
		risks = "\n".join(f"- {r}" for r in risk_factors)
	else:
		risks = "No risk factors listed."
	return (
		"You are a healthcare professional providing hearing screening recommendations for infants.\n"
		"Based on the infant's screening status, age in months, and risk factors, generate personalized "
		"recommendations for the parents or health workers.\n\n"
		f"Screening Status: {status}\n"
		f"Age in Months: {age_months:g}\n"
		f"Risk Factors:\n{risks}\n\n"
		"Generate personalized recommendations and decide if a reminder is needed for follow-up screenings.\n"
		"Set reminderNeeded to true if a follow-up is necessary, otherwise set it to false.\n\n"
		"Return ONLY a JSON object with keys: recommendations (string), reminderNeeded (boolean)."
	)


async def generate_recommendations(status: str, age_months: float, risk_factors: List[str]) -> Dict[str, Any]:
	client = GeminiClient()
	try:
		raw = await client.generate(_build_recommendations_prompt(status, age_months, risk_factors))
	finally:
		await client.aclose()
	data = _extract_json_object(raw)
	text = str(data.get("recommendations") or "").strip()
	if not text:
		raise GenerationError("empty recommendations")
	reminder = data.get("reminderNeeded")
	if isinstance(reminder, str):
		reminder = reminder.strip().lower() == "true"
	return {"recommendations": text, "reminderNeeded": bool(reminder)}


@router.get("")
async def get_screening(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	store = DocumentStore(db)
	cache = get_record_cache(user.username)
	profile = cache.load(store, PROFILES)
	screening = cache.load(store, SCREENINGS)
	dob = _parse_dob(profile.data.get("dob"))
	notice = "Failed to load data." if profile.read_failed or screening.read_failed else None
	return {
		"screening": screening.snapshot(),
		"ageInMonths": age_in_months(dob) if dob else None,
		"notice": notice,
	}


@router.put("")
async def update_screening(req: ScreeningUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req.screeningStatus not in SCREENING_STATUSES:
		raise HTTPException(status_code=422, detail="Please select a screening status.")
	cache = get_record_cache(user.username)
	try:
		rec = cache.save(
			DocumentStore(db),
			SCREENINGS,
			{"screeningStatus": req.screeningStatus, "userId": user.username, "lastUpdated": utc_timestamp()},
			merge=True,
		)
	except StoreError:
		raise HTTPException(status_code=503, detail="Failed to save screening status.")
	return rec.snapshot()


@router.post("/recommendations")
async def recommend(req: ScreeningUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req.screeningStatus not in SCREENING_STATUSES:
		raise HTTPException(status_code=422, detail="Please select a screening status.")
	store = DocumentStore(db)
	cache = get_record_cache(user.username)
	dob = _parse_dob(cache.load(store, PROFILES).data.get("dob"))
	if dob is None:
		raise HTTPException(status_code=400, detail="Infant profile and age are required.")
	risk_factors = list(cache.load(store, SCREENINGS).data.get("riskFactors") or [])
	months = age_in_months(dob)
	consume_generation_quota(db, user.username)
	try:
		result = await generate_recommendations(req.screeningStatus, months, risk_factors)
	except Exception as e:
		logger.warning("recommendations for %s failed: %s", user.username, e)
		raise HTTPException(status_code=502, detail="Could not get recommendations.")
	try:
		rec = cache.save(
			store,
			SCREENINGS,
			{
				"screeningStatus": req.screeningStatus,
				"recommendations": result["recommendations"],
				"reminderNeeded": result["reminderNeeded"],
				"userId": user.username,
				"lastUpdated": utc_timestamp(),
			},
			merge=True,
		)
	except StoreError:
		# Generated text is still returned so the caregiver does not lose it
		return {"result": result, "screening": cache.record(SCREENINGS).snapshot(), "notice": "Failed to save recommendations."}
	return {"result": result, "screening": rec.snapshot(), "notice": None}
