"""
Integrity Rule Tables
=====================

Static tables consumed by the integrity engine:
- Validation rules: a predicate over a proposed value and the player
  document as the batch would leave it. Predicates may be coroutines.
- Cascade rules: when a source field is written, recompute the derived
  fields that depend on it.

Derived composite scores (aiRating.*, playerValue.*, cohesionMetrics.*)
are produced here and clamped to their fixed ranges.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple


Validator = Callable[[Any, dict], Any]
CascadeFunction = Callable[[Any, dict], Dict[str, Any]]
JerseyLookup = Callable[[int, Optional[str]], Awaitable[bool]]
Clock = Callable[[], datetime]


MEDICAL_STATUSES = ("cleared", "restricted")
AVAILABILITY_STATUSES = ("available", "injured", "modified")

AI_RATING_SCORES = ("overall", "physicality", "skillset", "gameImpact", "potential")
PLAYER_VALUE_SCORES = (
    "medicalScore", "fitnessScore", "performanceScore", "attendanceScore",
    "skillsScore", "personalityScore", "cohesionScore",
)
COHESION_SCORES = ("reliability", "teamwork", "leadership")

CLEARANCE_CONFLICT = "Cannot set medical status to cleared when active injuries exist"
AVAILABILITY_CONFLICT = "Player cannot be available with medical restrictions or injuries"


@dataclass(frozen=True)
class ValidationRule:
    field: str
    validator: Validator
    error_message: str
    dependencies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CascadeRule:
    source_field: str
    target_fields: Tuple[str, ...]
    update_function: CascadeFunction
    stamp: Optional[str] = None


# =============================================================================
# POSITION TABLES
# =============================================================================

POSITION_BENCHMARKS: Dict[str, Dict[str, float]] = {
    "Prop": {"weight": 115, "height": 185, "benchPress": 140, "squat": 180},
    "Hooker": {"weight": 105, "height": 180, "benchPress": 130, "squat": 170},
    "Lock": {"weight": 110, "height": 200, "benchPress": 135, "squat": 175},
    "Flanker": {"weight": 100, "height": 190, "benchPress": 125, "squat": 165},
    "Number 8": {"weight": 105, "height": 195, "benchPress": 130, "squat": 170},
    "Scrum-half": {"weight": 80, "height": 175, "benchPress": 100, "squat": 140},
    "Fly-half": {"weight": 85, "height": 180, "benchPress": 105, "squat": 145},
    "Centre": {"weight": 95, "height": 185, "benchPress": 120, "squat": 160},
    "Wing": {"weight": 85, "height": 180, "benchPress": 105, "squat": 145},
    "Fullback": {"weight": 90, "height": 182, "benchPress": 115, "squat": 155},
}

POSITION_WEIGHTS: Dict[str, Dict[str, float]] = {
    "Prop": {"strength": 3, "scrummaging": 3, "ballHandling": 1, "tries": 0.5, "tackles": 2},
    "Hooker": {"ballHandling": 2, "lineoutThrowing": 3, "communication": 2, "tries": 1, "tackles": 2},
    "Lock": {"lineout": 3, "rucking": 2, "communication": 2, "tries": 1, "tackles": 2.5},
    "Flanker": {"rucking": 3, "defense": 2.5, "ballHandling": 2, "tries": 2, "tackles": 3},
    "Number 8": {"ballHandling": 2.5, "rucking": 2, "passing": 2, "tries": 2.5, "tackles": 2.5},
    "Scrum-half": {"passing": 3, "communication": 3, "ballHandling": 2.5, "tries": 2, "tackles": 1.5},
    "Fly-half": {"kicking": 3, "passing": 3, "communication": 2.5, "tries": 2.5, "tackles": 1.5},
    "Centre": {"defense": 2.5, "ballHandling": 2.5, "passing": 2, "tries": 2.5, "tackles": 2.5},
    "Wing": {"ballHandling": 2, "speed": 3, "tries": 3, "tackles": 1.5},
    "Fullback": {"kicking": 2.5, "ballHandling": 2.5, "communication": 2, "tries": 2.5, "tackles": 2},
}

DEFAULT_POSITION = "Centre"


def get_position_benchmarks(position: Optional[str]) -> Dict[str, float]:
    return POSITION_BENCHMARKS.get(position or "", POSITION_BENCHMARKS[DEFAULT_POSITION])


def get_position_weights(position: Optional[str]) -> Dict[str, float]:
    return POSITION_WEIGHTS.get(position or "", POSITION_WEIGHTS[DEFAULT_POSITION])


# =============================================================================
# HELPERS
# =============================================================================

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Numeric value of a stat field; missing or unparseable counts as 0."""
    if is_number(value):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_date(value: Any) -> Optional[date]:
    """Date part of an ISO date/datetime string (or date object)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None


def is_recent(value: Any, cutoff: date) -> bool:
    """Dated strictly after the cutoff day."""
    parsed = parse_date(value)
    return parsed is not None and parsed > cutoff


def _position(player: dict) -> Optional[str]:
    profile = player.get("rugbyProfile") or {}
    return profile.get("primaryPosition")


def _records(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def has_active_injury(player: dict) -> bool:
    return any(i.get("status") == "active" for i in _records(player.get("injuries")))


def _medically_unavailable(player: dict) -> bool:
    status = player.get("status") or {}
    return status.get("medical") == "restricted" or status.get("fitness") == "injured"


def clearance_conflict(player: dict) -> bool:
    """Marked cleared while an injury is still active."""
    status = player.get("status") or {}
    return status.get("medical") == "cleared" and has_active_injury(player)


def availability_conflict(player: dict) -> bool:
    """Marked available while medically restricted or injured."""
    status = player.get("status") or {}
    return status.get("availability") == "available" and _medically_unavailable(player)


def status_conflicts(player: dict) -> List[str]:
    """Messages for every status invariant the document breaks."""
    conflicts = []
    if clearance_conflict(player):
        conflicts.append(CLEARANCE_CONFLICT)
    if availability_conflict(player):
        conflicts.append(AVAILABILITY_CONFLICT)
    return conflicts


# =============================================================================
# VALIDATION RULES
# =============================================================================

def _skills_in_range(skills: Any, player: dict) -> bool:
    if not isinstance(skills, dict):
        return False
    return all(is_number(v) and 0 <= v <= 10 for v in skills.values())


def _medical_clearance_allowed(status: Any, player: dict) -> bool:
    return not (status == "cleared" and has_active_injury(player))


def _availability_allowed(availability: Any, player: dict) -> bool:
    return not (availability == "available" and _medically_unavailable(player))


def _scores_in_range(score_keys: Tuple[str, ...]) -> Validator:
    """Validator for a namespace whose listed keys are 0-10 scores."""

    def validator(value: Any, player: dict) -> bool:
        if not isinstance(value, dict):
            return False
        return all(
            is_number(value[key]) and 0 <= value[key] <= 10
            for key in score_keys
            if key in value
        )

    return validator


def build_validation_rules(jersey_taken: Optional[JerseyLookup] = None) -> List[ValidationRule]:
    """
    Validation table. ``jersey_taken(number, player_id)`` reports whether
    another player already wears a number.
    """

    async def jersey_number_available(number: Any, player: dict) -> bool:
        if not is_number(number) or int(number) != number:
            return False
        if not 1 <= number <= 99:
            return False
        if jersey_taken is None:
            return True
        return not await jersey_taken(int(number), player.get("id"))

    return [
        # Physical attributes
        ValidationRule(
            field="physicalAttributes.weight",
            validator=lambda weight, player: is_number(weight) and 40 < weight < 200,
            error_message="Weight must be between 40-200kg",
        ),
        ValidationRule(
            field="physicalAttributes.bodyFat",
            validator=lambda body_fat, player: is_number(body_fat) and 0 <= body_fat <= 50,
            error_message="Body fat percentage must be between 0-50%",
        ),
        # Medical status
        ValidationRule(
            field="status.medical",
            validator=lambda status, player: status in MEDICAL_STATUSES,
            error_message=f"Medical status must be one of: {', '.join(MEDICAL_STATUSES)}",
        ),
        ValidationRule(
            field="status.medical",
            validator=_medical_clearance_allowed,
            error_message=CLEARANCE_CONFLICT,
            dependencies=("injuries",),
        ),
        # Availability
        ValidationRule(
            field="status.availability",
            validator=lambda availability, player: availability in AVAILABILITY_STATUSES,
            error_message=f"Availability must be one of: {', '.join(AVAILABILITY_STATUSES)}",
        ),
        ValidationRule(
            field="status.availability",
            validator=_availability_allowed,
            error_message=AVAILABILITY_CONFLICT,
            dependencies=("status.medical", "status.fitness"),
        ),
        # Squad profile
        ValidationRule(
            field="rugbyProfile.jerseyNumber",
            validator=jersey_number_available,
            error_message="Jersey number must be between 1-99 and unique",
        ),
        # Skills
        ValidationRule(
            field="skills",
            validator=_skills_in_range,
            error_message="Skill ratings must be between 0-10",
        ),
        # Ratings and scores
        ValidationRule(
            field="aiRating",
            validator=_scores_in_range(AI_RATING_SCORES),
            error_message="AI ratings must be between 0-10",
        ),
        ValidationRule(
            field="playerValue",
            validator=_scores_in_range(PLAYER_VALUE_SCORES),
            error_message="Player value scores must be between 0-10",
        ),
        ValidationRule(
            field="cohesionMetrics",
            validator=_scores_in_range(COHESION_SCORES),
            error_message="Cohesion metrics must be between 0-10",
        ),
    ]


# =============================================================================
# CASCADE RULES
# =============================================================================

def build_cascade_rules(recent_window_days: int = 90, clock: Clock = datetime.utcnow) -> List[CascadeRule]:
    """Cascade table. ``clock`` anchors the "recent" window."""

    def cutoff() -> date:
        return clock().date() - timedelta(days=recent_window_days)

    def from_injuries(injuries: Any, player: dict) -> Dict[str, Any]:
        records = _records(injuries)
        since = cutoff()
        active = [i for i in records if i.get("status") == "active"]
        recent_resolved = [
            i for i in records
            if i.get("status") != "active" and is_recent(i.get("date"), since)
        ]

        medical_score = 10 - len(active) * 2 - len(recent_resolved) * 0.5

        return {
            "playerValue.medicalScore": clamp(medical_score, 0, 10),
            "status.medical": "restricted" if active else "cleared",
            "status.availability": "injured" if active else "available",
        }

    def from_physical_attributes(snapshots: Any, player: dict) -> Dict[str, Any]:
        records = _records(snapshots)
        if not records:
            return {}
        latest = records[-1]

        benchmarks = get_position_benchmarks(_position(player))
        physicality = 5.0
        weight = to_number(latest.get("weight"))
        if weight and benchmarks.get("weight"):
            physicality += (weight / benchmarks["weight"] - 1) * 2
        physicality = clamp(physicality, 1, 10)

        return {
            "aiRating.physicality": physicality,
            "playerValue.fitnessScore": physicality,
        }

    def from_game_stats(seasons: Any, player: dict) -> Dict[str, Any]:
        records = _records(seasons)
        if not records:
            return {}
        latest = records[-1]

        matches = max(1.0, to_number(latest.get("matchesPlayed")))
        tries_per_game = to_number(latest.get("tries")) / matches
        tackles_per_game = to_number(latest.get("tackles")) / matches
        minutes_per_game = to_number(latest.get("minutesPlayed")) / matches

        weights = get_position_weights(_position(player))
        game_impact = 5.0
        game_impact += tries_per_game * weights.get("tries", 1)
        game_impact += (tackles_per_game / 10) * weights.get("tackles", 1)
        game_impact += (minutes_per_game / 80) * 2
        game_impact = clamp(game_impact, 1, 10)

        rating = player.get("aiRating") or {}
        physicality = rating.get("physicality") if is_number(rating.get("physicality")) else 5
        skillset = rating.get("skillset") if is_number(rating.get("skillset")) else 5
        overall = clamp(physicality * 0.25 + skillset * 0.25 + game_impact * 0.5, 0, 10)

        return {
            "aiRating.gameImpact": game_impact,
            "aiRating.overall": overall,
            "playerValue.performanceScore": game_impact,
        }

    def from_skills(skills: Any, player: dict) -> Dict[str, Any]:
        if not isinstance(skills, dict):
            return {}
        weights = get_position_weights(_position(player))

        weighted_total = 0.0
        total_weight = 0.0
        for skill, value in skills.items():
            if not is_number(value):
                continue
            weight = weights.get(skill, 1)
            weighted_total += value * weight
            total_weight += weight

        if not total_weight:
            return {}

        skillset = clamp(weighted_total / total_weight, 0, 10)
        return {
            "aiRating.skillset": skillset,
            "playerValue.skillsScore": skillset,
        }

    def from_medical_appointments(appointments: Any, player: dict) -> Dict[str, Any]:
        since = cutoff()
        recent = [a for a in _records(appointments) if is_recent(a.get("date"), since)]
        missed = [a for a in recent if a.get("status") == "missed"]

        attendance_rate = 1 - len(missed) / max(1, len(recent))
        attendance_score = clamp(attendance_rate * 10, 0, 10)

        return {
            "playerValue.attendanceScore": attendance_score,
            "cohesionMetrics.reliability": attendance_score,
        }

    return [
        CascadeRule(
            source_field="injuries",
            target_fields=("playerValue.medicalScore", "status.medical", "status.availability"),
            update_function=from_injuries,
        ),
        CascadeRule(
            source_field="physicalAttributes",
            target_fields=("aiRating.physicality", "playerValue.fitnessScore"),
            update_function=from_physical_attributes,
            stamp="aiRating.lastUpdated",
        ),
        CascadeRule(
            source_field="gameStats",
            target_fields=("aiRating.overall", "aiRating.gameImpact", "playerValue.performanceScore"),
            update_function=from_game_stats,
            stamp="aiRating.lastUpdated",
        ),
        CascadeRule(
            source_field="skills",
            target_fields=("aiRating.skillset", "playerValue.skillsScore"),
            update_function=from_skills,
            stamp="aiRating.lastUpdated",
        ),
        CascadeRule(
            source_field="medicalAppointments",
            target_fields=("playerValue.attendanceScore", "cohesionMetrics.reliability"),
            update_function=from_medical_appointments,
            stamp="cohesionMetrics.lastUpdated",
        ),
    ]


def check_cascade_targets(rules: Sequence[CascadeRule]) -> None:
    """Reject tables where two rules derive the same field."""
    owners: Dict[str, str] = {}
    for rule in rules:
        for target in rule.target_fields:
            if target in owners:
                raise ValueError(
                    f"Cascade target '{target}' is derived by both "
                    f"'{owners[target]}' and '{rule.source_field}'"
                )
            owners[target] = rule.source_field
