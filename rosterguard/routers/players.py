"""
Players Router
==============

Player document endpoints:
- Create / fetch a player document
- Domain updates (medical, training, injuries, GPS, AI analysis, value,
  live match, external sync, CSV import, bulk update)
- Update history and integrity report

Every update goes through the PlayerUpdateService; failed batches return
``{"success": false, "errors": [...], "warnings": [...]}`` with 404 for
an unknown player, 400 for rejected input and 500 for database errors.
"""

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import ORJSONResponse

from rosterguard.exceptions import PlayerExistsError, PlayerNotFoundError
from rosterguard.dependencies import get_integrity_engine, get_update_service
from rosterguard.schemas import (
    AIAnalysis, BulkUpdateRequest, BulkUpdateResponse, CSVImportRequest, DataUpdateRead,
    GPSSession, InjuryRecord, IntegrityReport, LiveMatchUpdate, MedicalAppointment,
    OperationResponse, PlayerCreate, PlayerDocument, PlayerValueUpdate, TrainingAttendance,
    UpdateErrorType, UpdateResult,
)
from rosterguard.services import IntegrityEngine, PlayerUpdateService

router = APIRouter(prefix="/players", tags=["Players"])


ERROR_STATUS = {
    UpdateErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    UpdateErrorType.VALIDATION: status.HTTP_400_BAD_REQUEST,
    UpdateErrorType.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

UpdateResponse = Union[OperationResponse, ORJSONResponse]


def update_response(result: UpdateResult, message: str) -> UpdateResponse:
    """Success message, or the error body with the matching status code."""
    if result.success:
        return OperationResponse(message=message)

    return ORJSONResponse(
        status_code=ERROR_STATUS.get(result.error_type, status.HTTP_400_BAD_REQUEST),
        content={"success": False, "errors": result.errors, "warnings": result.warnings},
    )


# =============================================================================
# DOCUMENTS
# =============================================================================

@router.post("", response_model=PlayerDocument, status_code=status.HTTP_201_CREATED)
async def create_player(
    payload: PlayerCreate,
    engine: IntegrityEngine = Depends(get_integrity_engine),
) -> PlayerDocument:
    """
    Seed a player document.

    No history entry is written; later changes go through the update
    endpoints below.
    """
    try:
        document = await engine.create_player(payload.id, payload.document)
    except PlayerExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return PlayerDocument(id=payload.id, document=document)


@router.post("/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update(
    payload: BulkUpdateRequest,
    service: PlayerUpdateService = Depends(get_update_service),
) -> BulkUpdateResponse:
    """
    Apply one update batch per player, typically rows from a spreadsheet.

    A failing player does not stop the rest; per-player outcomes are in
    ``results``.
    """
    results = await service.process_bulk_player_update(payload.player_updates, payload.updated_by)
    succeeded = sum(1 for r in results if r.success)

    return BulkUpdateResponse(
        success=True,
        message=f"Bulk update completed: {succeeded} successful, {len(results) - succeeded} failed",
        results=results,
    )


@router.get("/{player_id}", response_model=PlayerDocument)
async def get_player(
    player_id: str,
    engine: IntegrityEngine = Depends(get_integrity_engine),
) -> PlayerDocument:
    try:
        document = await engine.get_player(player_id)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return PlayerDocument(id=player_id, document=document)


# =============================================================================
# MEDICAL
# =============================================================================

@router.post("/{player_id}/medical/appointments", response_model=OperationResponse)
async def update_medical_appointment(
    player_id: str,
    appointment: MedicalAppointment,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    """
    Record a medical appointment.

    A missed appointment recomputes the attendance-derived scores.
    """
    appointment.player_id = player_id
    result = await service.update_medical_appointment(appointment, appointment.updated_by or "medical_staff")
    return update_response(result, "Medical appointment updated successfully")


@router.post("/{player_id}/injuries", response_model=OperationResponse)
async def update_injury(
    player_id: str,
    injury: InjuryRecord,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    """
    Add or update an injury record.

    **Cascades:** medical status, availability and medical score are
    recomputed from the full injury list.
    """
    result = await service.process_injury_update(player_id, injury, injury.updated_by or "medical_staff")
    return update_response(result, "Injury record updated successfully")


# =============================================================================
# TRAINING & MATCH DATA
# =============================================================================

@router.post("/{player_id}/training/attendance", response_model=OperationResponse)
async def update_training_attendance(
    player_id: str,
    attendance: TrainingAttendance,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    attendance.player_id = player_id
    result = await service.update_training_attendance(attendance, attendance.updated_by or "coaching_staff")
    return update_response(result, "Training attendance updated successfully")


@router.post("/{player_id}/gps-data", response_model=OperationResponse)
async def update_gps_data(
    player_id: str,
    gps: GPSSession,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    """Store a GPS session and refresh the fitness heuristic."""
    result = await service.process_gps_data_update(player_id, gps, "statsports_api")
    return update_response(result, "GPS data updated successfully")


@router.post("/{player_id}/live-match", response_model=OperationResponse)
async def update_live_match(
    player_id: str,
    match: LiveMatchUpdate,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    result = await service.process_live_match_update(player_id, match, "live_system")
    return update_response(result, "Live match data updated successfully")


# =============================================================================
# RATINGS & VALUE
# =============================================================================

@router.post("/{player_id}/ai-analysis", response_model=OperationResponse)
async def update_ai_analysis(
    player_id: str,
    analysis: AIAnalysis,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    result = await service.process_ai_analysis_update(player_id, analysis, "ai_system")
    return update_response(result, "AI analysis updated successfully")


@router.post("/{player_id}/player-value", response_model=OperationResponse)
async def update_player_value(
    player_id: str,
    value_update: PlayerValueUpdate,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    result = await service.update_player_value(
        player_id, value_update, value_update.updated_by or "coaching_staff"
    )
    return update_response(result, "Player value updated successfully")


# =============================================================================
# IMPORTS
# =============================================================================

@router.post("/{player_id}/csv-import", response_model=OperationResponse)
async def csv_import(
    player_id: str,
    payload: CSVImportRequest,
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    """
    Import one spreadsheet row keyed by column header.

    Example body:
    ```json
    {"data": {"Weight (kg)": "98", "Passing": "7.5"}, "updatedBy": "analyst"}
    ```
    """
    result = await service.process_csv_import(player_id, payload.data, payload.updated_by)
    return update_response(result, "CSV data imported successfully")


@router.post("/{player_id}/sync/{source}", response_model=OperationResponse)
async def sync_external_data(
    player_id: str,
    source: str,
    data: Dict[str, Any] = Body(...),
    service: PlayerUpdateService = Depends(get_update_service),
) -> UpdateResponse:
    """
    Apply a payload pulled from an external provider.

    Supported sources: `statsports`, `gain_line`, `google_sheets`.
    """
    try:
        result = await service.sync_external_data(player_id, source, data, f"{source}_api")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return update_response(result, f"Data synced from {source} successfully")


# =============================================================================
# HISTORY & REPORTS
# =============================================================================

@router.get("/{player_id}/update-history", response_model=List[DataUpdateRead])
async def get_update_history(
    player_id: str,
    limit: Optional[int] = Query(None, ge=1, description="Max entries (server default when omitted)"),
    offset: int = Query(0, ge=0),
    service: PlayerUpdateService = Depends(get_update_service),
) -> List[DataUpdateRead]:
    """Accepted update batches for a player, newest first."""
    return await service.get_player_data_history(player_id, limit=limit, offset=offset)


@router.get("/{player_id}/integrity-report", response_model=IntegrityReport)
async def get_integrity_report(
    player_id: str,
    service: PlayerUpdateService = Depends(get_update_service),
) -> IntegrityReport:
    """
    Heuristic consistency scan of the stored document.

    `consistencyScore` starts at 100 and loses 10 per issue found.
    """
    try:
        return await service.generate_player_data_report(player_id)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
