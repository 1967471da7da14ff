from fastapi import APIRouter
from sqlalchemy import text

from ..db import engine

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	try:
		with engine.connect() as conn:
			conn.execute(text("SELECT 1"))
		db_ok = True
	except Exception:
		db_ok = False
	return {"status": "ok" if db_ok else "degraded", "database": db_ok}
