"""
Player Update Service
=====================

Translates domain events (a missed appointment, a logged injury, a GPS
session upload, a CSV row) into update batches for the integrity engine.
Event-specific pre-computation that depends on the submitted record
lives here; everything else is left to the engine's rule tables.

No method in this module writes to the database directly.
"""

import logging
import re
import uuid
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from rosterguard.exceptions import PlayerNotFoundError
from rosterguard.models import UpdateSource
from rosterguard.paths import upsert_record
from rosterguard.schemas import (
    AIAnalysis, BulkUpdateItem, BulkUpdateResult, DataUpdateRead, ExternalSource, GPSSession,
    InjuryRecord, IntegrityReport, LiveMatchUpdate, MedicalAppointment, PlayerValueUpdate,
    TrainingAttendance, UpdateErrorType, UpdateResult,
)
from rosterguard.services.integrity import PLAYER_NOT_FOUND, IntegrityEngine
from rosterguard.services.rules import clamp, is_number, is_recent

logger = logging.getLogger(__name__)


ATTENDANCE_WINDOW_DAYS = 90
ATTENDED_STATUSES = ("present", "late")


# =============================================================================
# CSV / SPREADSHEET IMPORT
# =============================================================================

CSV_FIELD_MAPPING: Dict[str, str] = {
    "First Name": "personalDetails.firstName",
    "Last Name": "personalDetails.lastName",
    "Email": "personalDetails.email",
    "Phone": "personalDetails.phone",
    "Address": "personalDetails.address",
    "Jersey Number": "rugbyProfile.jerseyNumber",
    "Primary Position": "rugbyProfile.primaryPosition",
    "Years In Team": "rugbyProfile.yearsInTeam",
    "Height (cm)": "physicalAttributes.height",
    "Weight (kg)": "physicalAttributes.weight",
    "Body Fat (%)": "physicalAttributes.bodyFat",
    "Ball Handling": "skills.ballHandling",
    "Passing": "skills.passing",
    "Kicking": "skills.kicking",
    "Defense": "skills.defense",
    "Communication": "skills.communication",
    "Fitness Status": "status.fitness",
    "Medical Status": "status.medical",
}

CSV_INTEGER_FIELDS = frozenset({
    "rugbyProfile.jerseyNumber",
    "rugbyProfile.yearsInTeam",
    "physicalAttributes.height",
    "physicalAttributes.weight",
})

CSV_FLOAT_FIELDS = frozenset({
    "physicalAttributes.bodyFat",
    "skills.ballHandling",
    "skills.passing",
    "skills.kicking",
    "skills.defense",
    "skills.communication",
})

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")


def _parse_int(value: Any) -> int:
    """Leading integer of a cell ("92kg" -> 92); 0 when there is none."""
    if is_number(value):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _parse_float(value: Any) -> float:
    if is_number(value):
        return float(value)
    match = _LEADING_FLOAT.match(str(value))
    return float(match.group(1)) if match else 0.0


def transform_csv_data(row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a spreadsheet row keyed by column header onto document paths."""
    updates: Dict[str, Any] = {}

    for header, value in row.items():
        path = CSV_FIELD_MAPPING.get(header)
        if path is None or value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                continue

        if path in CSV_INTEGER_FIELDS:
            updates[path] = _parse_int(value)
        elif path in CSV_FLOAT_FIELDS:
            updates[path] = _parse_float(value)
        else:
            updates[path] = value

    return updates


# =============================================================================
# DERIVED METRICS
# =============================================================================

def calculate_gps_metrics(gps: GPSSession) -> Dict[str, float]:
    """
    Fitness heuristic from one GPS session.

    Base 5, adjusted for distance per minute (>80: +2, >60: +1, <40: -1)
    and for the share of high-speed plus sprint distance (>15%: +1,
    <5%: -1), clamped to 1-10.
    """
    distance_per_minute = gps.total_distance / gps.duration if gps.duration else 0.0

    zones = gps.total_distance_zones
    high_intensity = (zones.high_speed + zones.sprinting) / gps.total_distance if gps.total_distance else 0.0

    fitness_level = 5
    if distance_per_minute > 80:
        fitness_level += 2
    elif distance_per_minute > 60:
        fitness_level += 1
    elif distance_per_minute < 40:
        fitness_level -= 1

    if high_intensity > 0.15:
        fitness_level += 1
    elif high_intensity < 0.05:
        fitness_level -= 1

    return {
        "fitnessLevel": clamp(fitness_level, 1, 10),
        "trainingLoad": gps.player_load or 0,
        "workRate": distance_per_minute,
    }


def calculate_attendance_score(
    records: Iterable[dict],
    new_record: dict,
    today: date,
    window_days: int = ATTENDANCE_WINDOW_DAYS,
) -> float:
    """Share of attended sessions in the window, on a 0-10 scale."""
    cutoff = today - timedelta(days=window_days)
    all_records = upsert_record([r for r in records if isinstance(r, dict)], new_record)
    recent = [r for r in all_records if is_recent(r.get("date"), cutoff)]

    if not recent:
        return 10.0

    attended = [r for r in recent if r.get("status") in ATTENDED_STATUSES]
    return len(attended) / len(recent) * 10


def _not_found() -> UpdateResult:
    return UpdateResult(success=False, errors=[PLAYER_NOT_FOUND], error_type=UpdateErrorType.NOT_FOUND)


# =============================================================================
# SERVICE
# =============================================================================

class PlayerUpdateService:
    """Domain-event façade over the integrity engine."""

    def __init__(self, engine: IntegrityEngine):
        self.engine = engine

    async def _find_player(self, player_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.engine.get_player(player_id)
        except PlayerNotFoundError:
            return None

    # -------------------------------------------------------------------------
    # Medical
    # -------------------------------------------------------------------------

    async def update_medical_appointment(self, appointment: MedicalAppointment, updated_by: str) -> UpdateResult:
        record = appointment.to_document()
        updates: Dict[str, Any] = {f"medicalAppointments.{appointment.id}": record}

        # A missed appointment changes the attendance-derived scores, so
        # the cascade gets the complete appointment list.
        if appointment.status == "missed":
            player = await self._find_player(appointment.player_id)
            if player is None:
                return _not_found()
            updates["medicalAppointments"] = upsert_record(player.get("medicalAppointments") or [], record)

        return await self.engine.process_update(
            appointment.player_id,
            updates,
            UpdateSource.MEDICAL_UPDATE,
            updated_by,
            reason=f"Medical appointment {appointment.status}: {appointment.appointment_type}",
        )

    async def process_injury_update(self, player_id: str, injury: InjuryRecord, updated_by: str) -> UpdateResult:
        player = await self._find_player(player_id)
        if player is None:
            return _not_found()

        record = injury.to_document()
        record.setdefault("id", f"injury_{uuid.uuid4().hex[:9]}")

        return await self.engine.process_update(
            player_id,
            {"injuries": upsert_record(player.get("injuries") or [], record)},
            UpdateSource.MEDICAL_UPDATE,
            updated_by,
            reason=f"Injury {injury.status}: {injury.injury_type}",
        )

    # -------------------------------------------------------------------------
    # Training & GPS
    # -------------------------------------------------------------------------

    async def update_training_attendance(self, attendance: TrainingAttendance, updated_by: str) -> UpdateResult:
        player = await self._find_player(attendance.player_id)
        if player is None:
            return _not_found()

        record = attendance.to_document()
        score = calculate_attendance_score(
            player.get("trainingAttendance") or [],
            record,
            self.engine.now().date(),
        )

        return await self.engine.process_update(
            attendance.player_id,
            {
                f"trainingAttendance.{attendance.id}": record,
                "playerValue.attendanceScore": score,
                "cohesionMetrics.reliability": score,
            },
            UpdateSource.MANUAL,
            updated_by,
            reason=f"Training attendance: {attendance.status}",
        )

    async def process_gps_data_update(
        self,
        player_id: str,
        gps: GPSSession,
        updated_by: str = "system",
    ) -> UpdateResult:
        metrics = calculate_gps_metrics(gps)

        updates: Dict[str, Any] = {
            f"gpsData.{gps.id}": gps.to_document(),
            "physicalMetrics.currentFitness": metrics["fitnessLevel"],
            "physicalMetrics.workload": metrics["trainingLoad"],
        }
        if metrics["fitnessLevel"] < 6:
            updates["status.fitness"] = "needs_attention"
        elif metrics["fitnessLevel"] > 8:
            updates["status.fitness"] = "excellent"

        return await self.engine.process_update(
            player_id, updates, UpdateSource.API_CALL, updated_by, reason="GPS data from StatSports"
        )

    async def process_live_match_update(
        self,
        player_id: str,
        match: LiveMatchUpdate,
        updated_by: str = "live_system",
    ) -> UpdateResult:
        updates: Dict[str, Any] = {
            f"liveMatchData.{match.match_id}": match.to_document(),
            "currentMatch.status": "playing",
            "currentMatch.liveStats": match.stats,
        }
        if match.minutes_played is not None:
            updates["currentMatch.minutesPlayed"] = match.minutes_played

        return await self.engine.process_update(
            player_id, updates, UpdateSource.API_CALL, updated_by, reason="Live match data update"
        )

    # -------------------------------------------------------------------------
    # Ratings & value
    # -------------------------------------------------------------------------

    async def process_ai_analysis_update(
        self,
        player_id: str,
        analysis: AIAnalysis,
        updated_by: str = "ai_system",
    ) -> UpdateResult:
        ratings = {
            "aiRating.overall": analysis.overall_rating,
            "aiRating.physicality": analysis.physicality_rating,
            "aiRating.skillset": analysis.skillset_rating,
            "aiRating.gameImpact": analysis.game_impact_rating,
            "aiRating.potential": analysis.potential_rating,
            "aiAnalysis.summary": analysis.summary,
        }
        updates = {path: value for path, value in ratings.items() if value is not None}
        updates["aiRating.lastUpdated"] = self.engine.now().isoformat()
        updates["aiAnalysis.strengths"] = analysis.strengths
        updates["aiAnalysis.developmentAreas"] = analysis.development_areas
        updates["aiAnalysis.recommendations"] = analysis.recommendations

        return await self.engine.process_update(
            player_id, updates, UpdateSource.AI_ANALYSIS, updated_by, reason="AI performance analysis update"
        )

    async def update_player_value(
        self,
        player_id: str,
        value_update: PlayerValueUpdate,
        updated_by: str,
    ) -> UpdateResult:
        updates = {f"playerValue.{key}": value for key, value in value_update.to_document().items()}
        updates["playerValue.lastUpdated"] = self.engine.now().isoformat()

        return await self.engine.process_update(
            player_id, updates, UpdateSource.MANUAL, updated_by, reason="Player value metrics update"
        )

    # -------------------------------------------------------------------------
    # Imports
    # -------------------------------------------------------------------------

    async def process_csv_import(self, player_id: str, row: Dict[str, Any], updated_by: str) -> UpdateResult:
        return await self.engine.process_update(
            player_id, transform_csv_data(row), UpdateSource.CSV_UPLOAD, updated_by, reason="CSV data import"
        )

    async def process_bulk_player_update(
        self,
        items: List[BulkUpdateItem],
        updated_by: str,
    ) -> List[BulkUpdateResult]:
        results: List[BulkUpdateResult] = []

        for item in items:
            result = await self.engine.process_update(
                item.player_id,
                item.updates,
                UpdateSource.CSV_UPLOAD,
                updated_by,
                reason="Bulk update from spreadsheet",
            )
            results.append(BulkUpdateResult(
                player_id=item.player_id,
                success=result.success,
                errors=result.errors,
                warnings=result.warnings,
                error_type=result.error_type,
            ))

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Bulk update by {updated_by}: {len(results) - failed} succeeded, {failed} failed")
        return results

    async def sync_external_data(
        self,
        player_id: str,
        source: Union[ExternalSource, str],
        data: Dict[str, Any],
        updated_by: str = "system",
    ) -> UpdateResult:
        """
        Apply a payload pulled from an external provider.

        Raises ValueError for a provider this service does not know.
        """
        try:
            source = ExternalSource(source)
        except ValueError:
            raise ValueError(f"Unknown data source: {source}")

        if source == ExternalSource.STATSPORTS:
            updates = self._transform_statsports(data)
        elif source == ExternalSource.GAIN_LINE:
            updates = self._transform_gain_line(data)
        else:
            updates = transform_csv_data(data)

        return await self.engine.process_update(
            player_id,
            updates,
            UpdateSource.API_CALL,
            updated_by,
            reason=f"External data sync from {source.value}",
        )

    def _transform_statsports(self, data: Dict[str, Any]) -> Dict[str, Any]:
        mapped = {
            "gpsData": data.get("gpsMetrics"),
            "physicalMetrics.workload": data.get("playerLoad"),
            "physicalMetrics.maxSpeed": data.get("maxSpeed"),
        }
        updates = {path: value for path, value in mapped.items() if value is not None}
        updates["lastUpdated"] = self.engine.now().isoformat()
        return updates

    def _transform_gain_line(self, data: Dict[str, Any]) -> Dict[str, Any]:
        # Scores live under cohesionMetrics; there are no top-level score fields
        mapped = {
            "cohesionMetrics": data.get("cohesionData"),
            "cohesionMetrics.teamwork": data.get("teamworkRating"),
            "cohesionMetrics.leadership": data.get("leadershipScore"),
        }
        updates = {path: value for path, value in mapped.items() if value is not None}
        updates["lastUpdated"] = self.engine.now().isoformat()
        return updates

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_player_data_history(
        self,
        player_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[DataUpdateRead]:
        return await self.engine.get_history(player_id, limit=limit, offset=offset)

    async def generate_player_data_report(self, player_id: str) -> IntegrityReport:
        return await self.engine.generate_integrity_report(player_id)
