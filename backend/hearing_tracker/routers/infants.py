from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..store import DocumentStore, StoreError
from .auth import User, get_current_user

router = APIRouter(prefix="/infants", tags=["infants"])


class NewInfant(BaseModel):
	name: str


@router.get("")
async def list_infants(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	try:
		return {"infants": DocumentStore(db).list_infants(user.username)}
	except StoreError:
		raise HTTPException(status_code=503, detail="Failed to fetch infants.")


@router.post("", status_code=201)
async def add_infant(req: NewInfant, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	name = (req.name or "").strip()
	if not name:
		raise HTTPException(status_code=400, detail="Please enter a valid name for the infant.")
	try:
		return DocumentStore(db).add_infant(user.username, name)
	except StoreError:
		raise HTTPException(status_code=503, detail="Failed to add infant.")


@router.get("/{infant_id}")
async def get_infant(infant_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	try:
		infant = DocumentStore(db).get_infant(user.username, infant_id)
	except StoreError:
		raise HTTPException(status_code=503, detail="Failed to fetch infant.")
	if infant is None:
		raise HTTPException(status_code=404, detail="Infant not found")
	return infant
