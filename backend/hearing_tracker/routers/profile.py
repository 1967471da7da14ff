from __future__ import annotations
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..store import DocumentStore, PROFILES, StoreError, utc_timestamp
from ..sync import get_record_cache
from .auth import User, get_current_user

router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileForm(BaseModel):
	name: str = Field(min_length=2)
	dob: date
	gender: Literal["Male", "Female", "Other"]
	guardianName: str = Field(min_length=2)
	guardianContact: str = Field(min_length=10)


@router.get("")
async def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	rec = get_record_cache(user.username).load(DocumentStore(db), PROFILES)
	out = rec.snapshot()
	out["notice"] = "Failed to fetch profile." if rec.read_failed else None
	return out


@router.put("")
async def save_profile(form: ProfileForm, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	values = form.model_dump()
	values["dob"] = form.dob.isoformat()
	values["userId"] = user.username
	values["lastUpdated"] = utc_timestamp()
	cache = get_record_cache(user.username)
	try:
		rec = cache.save(DocumentStore(db), PROFILES, values, merge=True)
	except StoreError:
		raise HTTPException(status_code=503, detail="Failed to save the profile.")
	return rec.snapshot()
