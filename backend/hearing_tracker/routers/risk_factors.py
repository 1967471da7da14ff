from ..catalog import risk_factor_categories
from ..store import SCREENINGS
from .wizard import build_selection_router

# Risk factors live on the screening record next to the status and recommendations
router = build_selection_router(
	"risk-factors",
	categories=risk_factor_categories,
	collection=SCREENINGS,
	field="riskFactors",
	merge=True,
	load_error="Failed to load risk factors.",
	save_error="Could not save risk factors.",
)
