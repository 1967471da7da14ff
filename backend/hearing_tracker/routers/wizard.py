"""
Routes shared by the category-selection pages.

Milestones, risk factors and the milestone checklist all store one list of
catalog labels per caregiver. Each gets a plain read/replace pair; milestones
and risk factors also get the step-by-step wizard, held in memory per
caregiver until it is restarted.
"""

from __future__ import annotations
from typing import Callable, Dict, List, Sequence, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db, session_scope
from ..store import DocumentStore, StoreError, utc_timestamp
from ..sync import get_record_cache
from ..wizard import Wizard, WizardSaveError
from .auth import User, get_current_user

Categories = Callable[[], Sequence[Tuple[str, Sequence[str]]]]

# (kind, username) -> wizard
_wizards: Dict[Tuple[str, str], Wizard] = {}


class ToggleRequest(BaseModel):
	item: str


class SelectionRequest(BaseModel):
	items: List[str]


def reset_wizards() -> None:
	_wizards.clear()


def build_selection_router(
	kind: str,
	*,
	categories: Categories,
	collection: str,
	field: str,
	merge: bool,
	load_error: str,
	save_error: str,
	with_wizard: bool = True,
) -> APIRouter:
	router = APIRouter(prefix=f"/{kind}", tags=[kind])

	def known_items() -> List[str]:
		return [i for _, items in categories() for i in items]

	def completion(selected: Sequence[str]) -> float:
		total = len(known_items())
		return len(selected) / total if total else 0.0

	def values_for(username: str, items: List[str]) -> Dict[str, object]:
		return {field: items, "userId": username, "lastUpdated": utc_timestamp()}

	def persister(username: str) -> Callable[[List[str]], None]:
		def persist(items: List[str]) -> None:
			cache = get_record_cache(username)
			with session_scope() as db:
				cache.save(DocumentStore(db), collection, values_for(username, items), merge=merge)
		return persist

	def wizard_state(wizard: Wizard, username: str) -> Dict[str, object]:
		state = wizard.state()
		state["completion"] = completion(wizard.selection())
		state["sync"] = get_record_cache(username).record(collection).status.value
		return state

	def require_wizard(username: str) -> Wizard:
		wizard = _wizards.get((kind, username))
		if wizard is None:
			raise HTTPException(status_code=404, detail="Wizard not started")
		return wizard

	@router.get("")
	async def get_selection(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
		rec = get_record_cache(user.username).load(DocumentStore(db), collection)
		selected = list(rec.data.get(field) or [])
		out = rec.snapshot()
		out["completion"] = completion(selected)
		out["notice"] = load_error if rec.read_failed else None
		return out

	@router.put("")
	async def replace_selection(req: SelectionRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
		known = set(known_items())
		unknown = [i for i in req.items if i not in known]
		if unknown:
			raise HTTPException(status_code=422, detail=f"Unknown items: {unknown}")
		# Deduplicate, keep catalog order
		chosen = set(req.items)
		items = [i for i in known_items() if i in chosen]
		cache = get_record_cache(user.username)
		try:
			rec = cache.save(DocumentStore(db), collection, values_for(user.username, items), merge=merge)
		except StoreError:
			raise HTTPException(status_code=503, detail=save_error)
		out = rec.snapshot()
		out["completion"] = completion(items)
		return out

	if not with_wizard:
		return router

	@router.post("/wizard/start")
	async def start_wizard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
		rec = get_record_cache(user.username).load(DocumentStore(db), collection)
		wizard = Wizard(categories(), persister(user.username), selected=rec.data.get(field) or [])
		_wizards[(kind, user.username)] = wizard
		state = wizard_state(wizard, user.username)
		state["notice"] = load_error if rec.read_failed else None
		return state

	@router.get("/wizard")
	async def get_wizard(user: User = Depends(get_current_user)):
		return wizard_state(require_wizard(user.username), user.username)

	@router.post("/wizard/toggle")
	async def toggle(req: ToggleRequest, user: User = Depends(get_current_user)):
		wizard = require_wizard(user.username)
		try:
			wizard.toggle_item(req.item)
		except KeyError:
			raise HTTPException(status_code=422, detail="Unknown item")
		return wizard_state(wizard, user.username)

	@router.post("/wizard/next")
	async def next_step(user: User = Depends(get_current_user)):
		wizard = require_wizard(user.username)
		try:
			wizard.advance()
		except WizardSaveError:
			raise HTTPException(status_code=503, detail={"message": save_error, "wizard": wizard_state(wizard, user.username)})
		return wizard_state(wizard, user.username)

	@router.post("/wizard/back")
	async def previous_step(user: User = Depends(get_current_user)):
		wizard = require_wizard(user.username)
		wizard.retreat()
		return wizard_state(wizard, user.username)

	@router.post("/wizard/save")
	async def save(user: User = Depends(get_current_user)):
		wizard = require_wizard(user.username)
		try:
			wizard.save()
		except WizardSaveError:
			raise HTTPException(status_code=503, detail={"message": save_error, "wizard": wizard_state(wizard, user.username)})
		return wizard_state(wizard, user.username)

	return router
