from fastapi import APIRouter

from ..catalog import (
	AUDITORY_MILESTONES,
	ENVIRONMENTAL_SOUNDS,
	HIGH_RISK_FACTORS,
	LING_SIX_SOUNDS,
	SCREENING_STATUSES,
	ling_sound_src,
	total_milestones,
)

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("")
def get_catalog():
	return {
		"screeningStatuses": list(SCREENING_STATUSES),
		"riskFactors": HIGH_RISK_FACTORS,
		"milestones": AUDITORY_MILESTONES,
		"totalMilestones": total_milestones(),
		"lingSounds": [{**s, "src": ling_sound_src(s["sound"])} for s in LING_SIX_SOUNDS],
		"environmentalSounds": ENVIRONMENTAL_SOUNDS,
	}


@router.get("/risk-factors")
def get_risk_factors():
	return HIGH_RISK_FACTORS


@router.get("/milestones")
def get_milestones():
	return AUDITORY_MILESTONES
