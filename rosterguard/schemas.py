"""
RosterGuard API Schemas
=======================

Pydantic schemas for request/response validation.

Domain payloads (injuries, appointments, attendance, GPS sessions, AI
analyses) use camelCase aliases because they are stored verbatim inside
the player document. Unknown keys are kept, so clinic- or vendor-specific
fields survive the round trip.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rosterguard.models import UpdateCategory, UpdateSource


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class CamelSchema(BaseModel):
    """Base schema serialised with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DocumentRecord(CamelSchema):
    """A record stored inside the player document."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    updated_by: Optional[str] = Field(default=None, exclude=True)

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible dict as stored in the player document."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# HEALTH & STATUS
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: datetime
    database: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness probe response."""
    ready: bool
    checks: Dict[str, bool]


# =============================================================================
# MEDICAL
# =============================================================================

class InjuryRecord(DocumentRecord):
    id: Optional[str] = None
    injury_type: Optional[str] = Field(default=None, alias="type")
    status: Literal["active", "cleared"]
    date: Optional[str] = None
    severity: Optional[str] = None
    body_part: Optional[str] = None
    expected_return: Optional[str] = None
    notes: Optional[str] = None


class MedicalAppointment(DocumentRecord):
    id: str
    player_id: Optional[str] = None
    appointment_type: Literal["routine_checkup", "injury_assessment", "treatment", "clearance"] = Field(alias="type")
    date: str
    scheduled_time: Optional[str] = None
    status: Literal["scheduled", "completed", "missed", "cancelled"]
    provider: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[str] = None


# =============================================================================
# TRAINING
# =============================================================================

class TrainingAttendance(DocumentRecord):
    id: str
    player_id: Optional[str] = None
    session_id: Optional[str] = None
    date: str
    session_type: Optional[Literal["team_training", "individual_training", "strength_conditioning", "skills_session"]] = None
    status: Literal["present", "absent", "late", "excused"]
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    participation_level: Optional[Literal["full", "modified", "observer"]] = None
    notes: Optional[str] = None


class GPSDistanceZones(DocumentRecord):
    high_speed: float = 0
    sprinting: float = 0


class GPSSession(DocumentRecord):
    """One GPS vendor session export."""
    id: str
    date: Optional[str] = None
    total_distance: float = Field(default=0, ge=0)
    duration: float = Field(default=0, ge=0)  # minutes
    total_distance_zones: GPSDistanceZones = Field(default_factory=GPSDistanceZones)
    player_load: Optional[float] = None
    max_speed: Optional[float] = None


# =============================================================================
# ANALYSIS & VALUE
# =============================================================================

class AIAnalysis(DocumentRecord):
    overall_rating: Optional[float] = Field(default=None, ge=0, le=10)
    physicality_rating: Optional[float] = Field(default=None, ge=0, le=10)
    skillset_rating: Optional[float] = Field(default=None, ge=0, le=10)
    game_impact_rating: Optional[float] = Field(default=None, ge=0, le=10)
    potential_rating: Optional[float] = Field(default=None, ge=0, le=10)
    summary: Optional[str] = None
    strengths: List[str] = []
    development_areas: List[str] = []
    recommendations: List[str] = []


class PlayerValueUpdate(DocumentRecord):
    contract_value: Optional[float] = None
    attendance_score: Optional[float] = Field(default=None, ge=0, le=10)
    medical_score: Optional[float] = Field(default=None, ge=0, le=10)
    personality_score: Optional[float] = Field(default=None, ge=0, le=10)
    performance_score: Optional[float] = Field(default=None, ge=0, le=10)
    cohesion_score: Optional[float] = Field(default=None, ge=0, le=10)
    total_score: Optional[float] = None


class LiveMatchUpdate(DocumentRecord):
    match_id: str
    minutes_played: Optional[float] = None
    stats: Dict[str, Any] = {}


# =============================================================================
# IMPORT & BULK
# =============================================================================

class CSVImportRequest(CamelSchema):
    data: Dict[str, Any]
    updated_by: str = "coaching_staff"


class BulkUpdateItem(CamelSchema):
    player_id: str
    updates: Dict[str, Any]


class BulkUpdateRequest(CamelSchema):
    player_updates: List[BulkUpdateItem]
    updated_by: str = "coaching_staff"


class ExternalSource(str, Enum):
    STATSPORTS = "statsports"
    GAIN_LINE = "gain_line"
    GOOGLE_SHEETS = "google_sheets"


# =============================================================================
# PLAYER DOCUMENTS
# =============================================================================

class PlayerCreate(CamelSchema):
    id: str = Field(min_length=1, max_length=100)
    document: Dict[str, Any] = {}


class PlayerDocument(CamelSchema):
    id: str
    document: Dict[str, Any]


# =============================================================================
# ENGINE RESULTS
# =============================================================================

class UpdateErrorType(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    PERSISTENCE = "persistence"


class UpdateResult(CamelSchema):
    """Outcome of one update batch."""
    success: bool
    errors: List[str] = []
    warnings: List[str] = []
    error_type: Optional[UpdateErrorType] = Field(default=None, exclude=True)


class BulkUpdateResult(UpdateResult):
    player_id: str


class BulkUpdateResponse(CamelSchema):
    success: bool
    message: str
    results: List[BulkUpdateResult]


class OperationResponse(CamelSchema):
    success: bool = True
    message: str


class DataUpdateRead(CamelSchema):
    """History entry for one accepted update batch."""
    id: str
    timestamp: datetime
    source: UpdateSource
    category: UpdateCategory
    player_id: str
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Dict[str, Any]
    updated_by: str
    reason: Optional[str] = None
    affected_metrics: List[str] = []


class IntegrityReport(CamelSchema):
    consistency_score: int = Field(ge=0, le=100)
    issues: List[str]
    recommendations: List[str]
    last_validation: datetime


class ValidateRequest(CamelSchema):
    player_id: str
    updates: Dict[str, Any]
    source: UpdateSource = UpdateSource.MANUAL
    updated_by: str = "system"


class ValidationReport(CamelSchema):
    valid: bool
    errors: List[str] = []
    warnings: List[str] = []
    cascading_updates: Dict[str, Any] = {}


class ImpactAnalysisRequest(CamelSchema):
    player_id: str
    updates: Dict[str, Any]


class ImpactAnalysis(CamelSchema):
    direct_updates: List[str]
    cascading_updates: List[str]
    affected_metrics: List[str]
    risk_level: Literal["low", "medium", "high"]
