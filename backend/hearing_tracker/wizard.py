"""
Step-by-step selection wizard.

Used by the milestone tracker and the risk-factor questionnaire: categories are
shown one at a time, followed by a summary step. Leaving the summary step
forward persists the whole selection in one write.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

Persist = Callable[[List[str]], None]


class WizardSaveError(Exception):
	"""Persisting the selection failed; the wizard keeps its state for a retry."""


class Wizard:
	"""
	Tracks the current step and the selected items of a category wizard.

	Attributes:
		categories: Ordered (title, items) pairs; index ``len(categories)`` is the summary step
		current_index: Current step in ``[0, len(categories)]``
		selected: Selected item identifiers
		completed: True once a save from the summary step succeeded
		last_error: Message of the most recent failed save, if any
	"""

	def __init__(
		self,
		categories: Sequence[Tuple[str, Sequence[str]]],
		persist: Persist,
		*,
		selected: Iterable[str] = (),
	) -> None:
		self.categories: List[Tuple[str, List[str]]] = [(title, list(items)) for title, items in categories]
		self._persist = persist
		self._known: Dict[str, int] = {}
		for order, item in enumerate(i for _, items in self.categories for i in items):
			self._known.setdefault(item, order)
		# Stored selections that no longer exist in the catalog are dropped
		self.selected: Set[str] = {i for i in selected if i in self._known}
		self.current_index = 0
		self.completed = False
		self.save_count = 0
		self.last_error: Optional[str] = None

	@property
	def total_steps(self) -> int:
		return len(self.categories)

	@property
	def on_summary(self) -> bool:
		return self.current_index == self.total_steps

	def toggle_item(self, item_id: str) -> bool:
		"""Flip membership of ``item_id``; returns whether it is now selected."""
		if item_id not in self._known:
			raise KeyError(item_id)
		if item_id in self.selected:
			self.selected.discard(item_id)
			return False
		self.selected.add(item_id)
		return True

	def advance(self) -> bool:
		"""Move one step forward, or save when already on the summary step.

		Returns True when this call completed the wizard.
		"""
		if self.current_index < self.total_steps:
			self.current_index += 1
			return False
		self.save()
		self.completed = True
		return True

	def retreat(self) -> None:
		if self.current_index > 0:
			self.current_index -= 1

	def progress_fraction(self) -> float:
		return (self.current_index + 1) / (self.total_steps + 1)

	def selection(self) -> List[str]:
		# Catalog order keeps the stored list stable between saves
		return sorted(self.selected, key=self._known.__getitem__)

	def save(self) -> None:
		try:
			self._persist(self.selection())
		except Exception as e:
			self.last_error = str(e) or e.__class__.__name__
			logger.warning("wizard save failed at step %s: %s", self.current_index, self.last_error)
			raise WizardSaveError(self.last_error) from e
		self.save_count += 1
		self.last_error = None

	def current_category(self) -> Optional[Tuple[str, List[str]]]:
		if self.on_summary:
			return None
		return self.categories[self.current_index]

	def state(self) -> Dict[str, object]:
		category = self.current_category()
		return {
			"step": self.current_index + 1,
			"total_steps": self.total_steps + 1,
			"current_index": self.current_index,
			"on_summary": self.on_summary,
			"progress": self.progress_fraction(),
			"category": None if category is None else {"title": category[0], "items": category[1]},
			"selected": self.selection(),
			"completed": self.completed,
			"last_error": self.last_error,
		}
