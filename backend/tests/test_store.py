from __future__ import annotations

import pytest

from hearing_tracker.db import session_scope
from hearing_tracker.store import DocumentStore, MILESTONES, SCREENINGS


def test_get_absent_returns_none() -> None:
	with session_scope() as db:
		assert DocumentStore(db).get(MILESTONES, "nobody") is None


def test_set_without_merge_overwrites_wholesale() -> None:
	with session_scope() as db:
		store = DocumentStore(db)
		store.set(MILESTONES, "u1", {"completed": ["a", "b"], "extra": 1})
		store.set(MILESTONES, "u1", {"completed": ["c"]})
		assert store.get(MILESTONES, "u1") == {"completed": ["c"]}


def test_set_with_merge_keeps_other_fields() -> None:
	with session_scope() as db:
		store = DocumentStore(db)
		store.set(SCREENINGS, "u1", {"screeningStatus": "Passed", "recommendations": "none"})
		store.set(SCREENINGS, "u1", {"riskFactors": ["premature"]}, merge=True)
		assert store.get(SCREENINGS, "u1") == {
			"screeningStatus": "Passed",
			"recommendations": "none",
			"riskFactors": ["premature"],
		}


def test_records_are_per_owner() -> None:
	with session_scope() as db:
		store = DocumentStore(db)
		store.set(MILESTONES, "u1", {"completed": ["a"]})
		assert store.get(MILESTONES, "u2") is None


def test_unknown_collection_rejected() -> None:
	with session_scope() as db:
		with pytest.raises(ValueError):
			DocumentStore(db).get("appointments", "u1")


def test_infants_are_listed_by_owner() -> None:
	with session_scope() as db:
		store = DocumentStore(db)
		first = store.add_infant("u1", "Ada")
		store.add_infant("u1", "Ben")
		store.add_infant("u2", "Cy")
		names = [i["name"] for i in store.list_infants("u1")]
		assert names == ["Ada", "Ben"]
		assert store.get_infant("u1", first["id"])["name"] == "Ada"
		assert store.get_infant("u2", first["id"]) is None
