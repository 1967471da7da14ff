from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .store import DocumentStore, StoreError

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
	DIRTY = "dirty"
	SYNCING = "syncing"
	SYNCED = "synced"
	ERROR = "error"


@dataclass
class CachedRecord:
	data: Dict[str, Any] = field(default_factory=dict)
	status: SyncStatus = SyncStatus.SYNCED
	error: Optional[str] = None
	# False until the store has confirmed a document exists for this record
	exists: bool = False
	# Local edits not yet confirmed by the store
	pending: bool = False
	# The unconfirmed fields themselves; a merge overlay sits on top of the stored body
	overlay: Dict[str, Any] = field(default_factory=dict)
	overlay_merges: bool = False
	# Set by the last load only; write failures do not touch it
	read_failed: bool = False

	def snapshot(self) -> Dict[str, Any]:
		return {
			"data": dict(self.data) if self.exists or self.pending else None,
			"status": self.status.value,
			"error": self.error,
		}


class RecordCache:
	"""Local copy of one owner's records with an explicit sync status per record.

	Local edits are kept whatever happens at the store, so a failed write can be
	retried by flushing again. Unconfirmed merge edits are replayed over the
	stored body on every load; an unconfirmed overwrite replaces it.
	"""

	def __init__(self, owner_id: str) -> None:
		self.owner_id = owner_id
		self._records: Dict[str, CachedRecord] = {}

	def record(self, collection: str) -> CachedRecord:
		rec = self._records.get(collection)
		if rec is None:
			rec = CachedRecord()
			self._records[collection] = rec
		return rec

	def load(self, store: DocumentStore, collection: str) -> CachedRecord:
		rec = self.record(collection)
		if rec.pending and not rec.overlay_merges:
			return rec
		try:
			data = store.get(collection, self.owner_id)
		except StoreError as e:
			rec.read_failed = True
			rec.error = str(e)
			if not rec.pending:
				rec.status = SyncStatus.ERROR
			return rec
		rec.read_failed = False
		rec.exists = data is not None
		if rec.pending:
			rec.data = {**(data or {}), **rec.overlay}
			return rec
		rec.data = dict(data or {})
		rec.status = SyncStatus.SYNCED
		rec.error = None
		return rec

	def stage(self, collection: str, values: Dict[str, Any], *, merge: bool = False) -> CachedRecord:
		rec = self.record(collection)
		if merge:
			rec.data = {**rec.data, **values}
			if rec.pending:
				rec.overlay = {**rec.overlay, **values}
			else:
				rec.overlay = dict(values)
				rec.overlay_merges = True
		else:
			rec.data = dict(values)
			rec.overlay = dict(values)
			rec.overlay_merges = False
		rec.status = SyncStatus.DIRTY
		rec.pending = True
		rec.error = None
		return rec

	def flush(self, store: DocumentStore, collection: str) -> CachedRecord:
		rec = self.record(collection)
		if not rec.pending:
			return rec
		rec.status = SyncStatus.SYNCING
		try:
			written = store.set(collection, self.owner_id, rec.overlay, merge=rec.overlay_merges)
		except StoreError as e:
			logger.warning("sync of %s for %s failed; keeping local copy", collection, self.owner_id)
			rec.status = SyncStatus.ERROR
			rec.error = str(e)
			raise
		rec.data = written
		rec.exists = True
		rec.pending = False
		rec.overlay = {}
		rec.overlay_merges = False
		rec.status = SyncStatus.SYNCED
		rec.error = None
		return rec

	def save(self, store: DocumentStore, collection: str, values: Dict[str, Any], *, merge: bool = False) -> CachedRecord:
		self.stage(collection, values, merge=merge)
		return self.flush(store, collection)


_caches: Dict[str, RecordCache] = {}


def get_record_cache(owner_id: str) -> RecordCache:
	cache = _caches.get(owner_id)
	if cache is None:
		cache = RecordCache(owner_id)
		_caches[owner_id] = cache
	return cache


def reset_record_caches() -> None:
	_caches.clear()
