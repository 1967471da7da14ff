from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Document, Infant

logger = logging.getLogger(__name__)

PROFILES = "infant_profiles"
SCREENINGS = "screenings"
MILESTONES = "milestones"
CHECKLISTS = "checklists"
LING_TESTS = "ling_tests"

COLLECTIONS = (PROFILES, SCREENINGS, MILESTONES, CHECKLISTS, LING_TESTS)


class StoreError(Exception):
	"""A document read or write did not reach the database."""


def utc_timestamp() -> str:
	return datetime.utcnow().isoformat() + "Z"


class DocumentStore:
	"""Per-owner singleton documents plus the owner's infant list.

	Each collection holds at most one document per owner. ``set`` without merge
	replaces the whole document; with merge only the given top-level fields
	are replaced.
	"""

	def __init__(self, db: Session) -> None:
		self.db = db

	def get(self, collection: str, owner_id: str) -> Optional[Dict[str, Any]]:
		_check_collection(collection)
		try:
			row = self.db.get(Document, (collection, owner_id))
		except SQLAlchemyError as e:
			logger.warning("read %s/%s failed: %s", collection, owner_id, e)
			raise StoreError(f"Failed to read {collection}") from e
		if row is None:
			return None
		return json.loads(row.body_json or "{}")

	def set(self, collection: str, owner_id: str, record: Dict[str, Any], *, merge: bool = False) -> Dict[str, Any]:
		_check_collection(collection)
		try:
			row = self.db.get(Document, (collection, owner_id))
			if row is None:
				row = Document(collection=collection, owner_id=owner_id)
				self.db.add(row)
				body: Dict[str, Any] = {}
			else:
				body = json.loads(row.body_json or "{}") if merge else {}
			body.update(record)
			row.body_json = json.dumps(body)
			self.db.commit()
		except SQLAlchemyError as e:
			self.db.rollback()
			logger.warning("write %s/%s failed: %s", collection, owner_id, e)
			raise StoreError(f"Failed to write {collection}") from e
		return body

	def add_infant(self, owner_id: str, name: str) -> Dict[str, Any]:
		row = Infant(id=uuid.uuid4().hex, name=name, owner_id=owner_id)
		try:
			self.db.add(row)
			self.db.commit()
		except SQLAlchemyError as e:
			self.db.rollback()
			logger.warning("add infant for %s failed: %s", owner_id, e)
			raise StoreError("Failed to add infant") from e
		return _infant_dict(row)

	def list_infants(self, owner_id: str) -> List[Dict[str, Any]]:
		try:
			rows = (
				self.db.query(Infant)
				.filter(Infant.owner_id == owner_id)
				.order_by(Infant.created_at)
				.all()
			)
		except SQLAlchemyError as e:
			logger.warning("list infants for %s failed: %s", owner_id, e)
			raise StoreError("Failed to fetch infants") from e
		return [_infant_dict(r) for r in rows]

	def get_infant(self, owner_id: str, infant_id: str) -> Optional[Dict[str, Any]]:
		try:
			row = self.db.get(Infant, infant_id)
		except SQLAlchemyError as e:
			raise StoreError("Failed to fetch infant") from e
		if row is None or row.owner_id != owner_id:
			return None
		return _infant_dict(row)


def _check_collection(collection: str) -> None:
	if collection not in COLLECTIONS:
		raise ValueError(f"unknown collection: {collection}")


def _infant_dict(row: Infant) -> Dict[str, Any]:
	return {
		"id": row.id,
		"name": row.name,
		"userId": row.owner_id,
		"createdAt": row.created_at.isoformat() + "Z" if row.created_at else None,
	}
