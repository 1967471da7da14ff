from ..catalog import milestone_categories
from ..store import CHECKLISTS, MILESTONES
from .wizard import build_selection_router

router = build_selection_router(
	"milestones",
	categories=milestone_categories,
	collection=MILESTONES,
	field="completed",
	# Completed milestones replace the whole record on every save
	merge=False,
	load_error="Failed to load milestones data.",
	save_error="Failed to save changes.",
)

checklist_router = build_selection_router(
	"checklist",
	categories=milestone_categories,
	collection=CHECKLISTS,
	field="completed",
	merge=False,
	load_error="Failed to load checklist data.",
	save_error="Failed to save changes.",
	with_wizard=False,
)
