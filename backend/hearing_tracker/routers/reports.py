from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..store import DocumentStore, LING_TESTS, MILESTONES, PROFILES, SCREENINGS
from ..sync import get_record_cache
from .auth import User, get_current_user

router = APIRouter(prefix="/reports", tags=["reports"])

REPORT_SECTIONS = {
	"profile": PROFILES,
	"screening": SCREENINGS,
	"milestones": MILESTONES,
	"lingTest": LING_TESTS,
}


@router.get("")
async def report(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	store = DocumentStore(db)
	cache = get_record_cache(user.username)
	out = {}
	failed = False
	for key, collection in REPORT_SECTIONS.items():
		rec = cache.load(store, collection)
		failed = failed or rec.read_failed
		out[key] = rec.snapshot()["data"]
	out["notice"] = "Could not load the report data." if failed else None
	return out
