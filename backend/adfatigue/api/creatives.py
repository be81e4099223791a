"""Creative-level decay analysis."""
from fastapi import APIRouter

from adfatigue.schemas import CreativeSampleIn
from adfatigue.services.creative_decay import CreativeSample, compute_creative_fatigue

router = APIRouter(prefix="/creatives", tags=["creatives"])


@router.post("/{creative_id}/fatigue")
def analyze_creative(creative_id: str, samples: list[CreativeSampleIn]):
    """CTR trend, saturation, decay from peak and projected end of life for one creative."""
    analysis = compute_creative_fatigue(
        [CreativeSample(**s.model_dump()) for s in samples],
        creative_id=creative_id,
    )
    return analysis.as_dict()
