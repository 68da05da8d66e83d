"""
Data Router
===========

Read-only previews of an update batch:
- Dry-run validation (nothing is persisted, no history entry)
- Cascade impact analysis
"""

from fastapi import APIRouter, Depends, HTTPException, status

from rosterguard.dependencies import get_integrity_engine
from rosterguard.exceptions import PlayerNotFoundError
from rosterguard.schemas import ImpactAnalysis, ImpactAnalysisRequest, ValidateRequest, ValidationReport
from rosterguard.services import IntegrityEngine

router = APIRouter(prefix="/data", tags=["Data"])


@router.post("/validate", response_model=ValidationReport)
async def validate_update(
    payload: ValidateRequest,
    engine: IntegrityEngine = Depends(get_integrity_engine),
) -> ValidationReport:
    """
    Check an update batch without applying it.

    Returns every validation error the batch would trigger and, when it
    is valid, the derived fields the cascade rules would write.

    Example response:
    ```json
    {
        "valid": true,
        "errors": [],
        "warnings": [],
        "cascadingUpdates": {"status.medical": "restricted", "status.availability": "injured"}
    }
    ```
    """
    return await engine.validate_update(payload.player_id, payload.updates)


@router.post("/impact-analysis", response_model=ImpactAnalysis)
async def impact_analysis(
    payload: ImpactAnalysisRequest,
    engine: IntegrityEngine = Depends(get_integrity_engine),
) -> ImpactAnalysis:
    """
    Fields and metrics a batch would touch.

    **Risk levels:**
    - high: injuries or medical status change
    - medium: availability, overall AI rating or total value change
    - low: anything else
    """
    try:
        return await engine.analyze_impact(payload.player_id, payload.updates)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
