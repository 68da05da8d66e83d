"""
Tests for Rule Tables
=====================

Tests for:
- Validation predicates (ranges, enums, cross-field invariants, jersey lookup)
- Cascade formulas (medical score, physicality, game impact, skillset, attendance)
- Rejection of overlapping cascade targets
"""

from datetime import datetime, timedelta

import pytest

from rosterguard.services.rules import (
    CascadeRule, ValidationRule, build_cascade_rules, build_validation_rules,
    check_cascade_targets, get_position_weights, is_recent, status_conflicts,
)


NOW = datetime(2026, 3, 16, 9, 30)
TODAY = NOW.date()


def rules_by_field(rules):
    grouped = {}
    for rule in rules:
        grouped.setdefault(rule.field, []).append(rule)
    return grouped


def cascades():
    return {rule.source_field: rule for rule in build_cascade_rules(recent_window_days=90, clock=lambda: NOW)}


# =============================================================================
# VALIDATION
# =============================================================================

def test_weight_and_body_fat_ranges():
    """Test physical attribute bounds."""
    rules = rules_by_field(build_validation_rules())
    weight = rules["physicalAttributes.weight"][0]
    body_fat = rules["physicalAttributes.bodyFat"][0]

    assert weight.validator(95, {})
    assert not weight.validator(40, {})
    assert not weight.validator(200, {})
    assert not weight.validator("95", {})
    assert body_fat.validator(0, {})
    assert body_fat.validator(50, {})
    assert not body_fat.validator(50.1, {})


def test_medical_clearance_blocked_by_active_injury():
    """Test that cleared is rejected while an injury is active."""
    enum_rule, clearance_rule = rules_by_field(build_validation_rules())["status.medical"]
    injured = {"injuries": [{"id": "i1", "status": "active"}]}
    recovered = {"injuries": [{"id": "i1", "status": "cleared"}]}

    assert not enum_rule.validator("fit", {})
    assert clearance_rule.validator("restricted", injured)
    assert not clearance_rule.validator("cleared", injured)
    assert clearance_rule.validator("cleared", recovered)
    assert clearance_rule.error_message == "Cannot set medical status to cleared when active injuries exist"


def test_availability_requires_medical_clearance():
    """Test that available is rejected for restricted or injured players."""
    enum_rule, availability_rule = rules_by_field(build_validation_rules())["status.availability"]

    assert enum_rule.validator("modified", {})
    assert not enum_rule.validator("resting", {})
    assert not availability_rule.validator("available", {"status": {"medical": "restricted"}})
    assert not availability_rule.validator("available", {"status": {"medical": "cleared", "fitness": "injured"}})
    assert availability_rule.validator("modified", {"status": {"medical": "restricted"}})
    assert availability_rule.validator("available", {"status": {"medical": "cleared"}})


def test_skill_ratings_range():
    """Test that every rating must be numeric and within 0-10."""
    skills_rule = rules_by_field(build_validation_rules())["skills"][0]

    assert skills_rule.validator({"passing": 0, "kicking": 10}, {})
    assert not skills_rule.validator({"passing": 11}, {})
    assert not skills_rule.validator({"passing": "7"}, {})
    assert not skills_rule.validator(7, {})


def test_score_namespaces_range():
    """Test that known rating, value and cohesion scores must be numeric and within 0-10."""
    rules = rules_by_field(build_validation_rules())
    ai_rule = rules["aiRating"][0]
    value_rule = rules["playerValue"][0]
    cohesion_rule = rules["cohesionMetrics"][0]

    assert ai_rule.validator({"overall": 0, "potential": 10, "lastUpdated": "2026-03-16"}, {})
    assert not ai_rule.validator({"overall": 50}, {})
    assert not ai_rule.validator({"gameImpact": "8"}, {})
    assert value_rule.validator({"contractValue": 120000, "totalScore": 72, "medicalScore": 9}, {})
    assert not value_rule.validator({"personalityScore": -0.1}, {})
    assert cohesion_rule.validator({"tenure": 4.2, "teamwork": 8}, {})
    assert not cohesion_rule.validator({"leadership": 11}, {})
    assert not cohesion_rule.validator(7, {})


def test_status_conflicts():
    """Test the cleared-but-injured and available-but-restricted checks on a whole document."""
    injured = [{"id": "i1", "status": "active"}]

    assert status_conflicts({"status": {"medical": "cleared", "availability": "available"}}) == []
    assert status_conflicts({"status": {"medical": "cleared"}, "injuries": injured}) == [
        "Cannot set medical status to cleared when active injuries exist",
    ]
    assert status_conflicts({"status": {"medical": "restricted", "availability": "available"}}) == [
        "Player cannot be available with medical restrictions or injuries",
    ]
    assert status_conflicts({"status": {"availability": "available", "fitness": "injured"}}) == [
        "Player cannot be available with medical restrictions or injuries",
    ]


@pytest.mark.asyncio
async def test_jersey_number_uses_lookup():
    """Test jersey range and uniqueness via the lookup callable."""
    calls = []

    async def taken(number, player_id):
        calls.append((number, player_id))
        return number == 7

    jersey_rule = rules_by_field(build_validation_rules(jersey_taken=taken))["rugbyProfile.jerseyNumber"][0]
    player = {"id": "p1"}

    assert await jersey_rule.validator(12, player)
    assert not await jersey_rule.validator(7, player)
    assert not await jersey_rule.validator(0, player)
    assert not await jersey_rule.validator(100, player)
    assert not await jersey_rule.validator(9.5, player)
    assert calls == [(12, "p1"), (7, "p1")]


# =============================================================================
# CASCADES
# =============================================================================

def test_is_recent_is_strictly_after_cutoff():
    """Test the recent-window boundary."""
    cutoff = TODAY - timedelta(days=90)

    assert is_recent(TODAY.isoformat(), cutoff)
    assert not is_recent(cutoff.isoformat(), cutoff)
    assert is_recent((cutoff + timedelta(days=1)).isoformat() + "T08:00:00Z", cutoff)
    assert not is_recent("not a date", cutoff)


def test_injury_cascade_active_and_cleared():
    """Test medical status and score from the injury list."""
    rule = cascades()["injuries"]

    active = rule.update_function([{"id": "i1", "status": "active", "date": TODAY.isoformat()}], {})
    assert active == {
        "playerValue.medicalScore": 8,
        "status.medical": "restricted",
        "status.availability": "injured",
    }

    cleared = rule.update_function([{"id": "i1", "status": "cleared", "date": TODAY.isoformat()}], {})
    assert cleared["playerValue.medicalScore"] == 9.5
    assert cleared["status.medical"] == "cleared"
    assert cleared["status.availability"] == "available"


def test_injury_cascade_ignores_old_resolved_injuries_and_clamps():
    """Test the recent window and the 0-10 clamp."""
    rule = cascades()["injuries"]
    old = (TODAY - timedelta(days=200)).isoformat()

    assert rule.update_function([{"status": "cleared", "date": old}], {})["playerValue.medicalScore"] == 10

    many_active = [{"id": f"i{n}", "status": "active", "date": old} for n in range(6)]
    assert rule.update_function(many_active, {})["playerValue.medicalScore"] == 0


def test_physical_attributes_cascade():
    """Test physicality from the latest snapshot against the position benchmark."""
    rule = cascades()["physicalAttributes"]
    player = {"rugbyProfile": {"primaryPosition": "Centre"}}

    result = rule.update_function([{"weight": 80}, {"weight": 104.5}], player)

    assert result["aiRating.physicality"] == pytest.approx(5.2)
    assert result["playerValue.fitnessScore"] == pytest.approx(5.2)
    assert rule.update_function([], player) == {}
    assert rule.stamp == "aiRating.lastUpdated"


def test_game_stats_cascade_formula():
    """Test game impact and overall rating for fixed season stats."""
    rule = cascades()["gameStats"]
    player = {
        "rugbyProfile": {"primaryPosition": "Centre"},
        "aiRating": {"physicality": 6, "skillset": 7},
    }
    season = {"matchesPlayed": 10, "tries": 2, "tackles": 50, "minutesPlayed": 600}

    result = rule.update_function([season], player)

    # 5 + 0.2*2.5 + 5/10*2.5 + 60/80*2
    assert result["aiRating.gameImpact"] == pytest.approx(8.25)
    # 6*0.25 + 7*0.25 + 8.25*0.5
    assert result["aiRating.overall"] == pytest.approx(7.375)
    assert result["playerValue.performanceScore"] == pytest.approx(8.25)


def test_game_stats_defaults_missing_ratings_to_five():
    """Test overall rating when no physicality/skillset is stored."""
    rule = cascades()["gameStats"]
    result = rule.update_function([{"matchesPlayed": 0}], {})

    assert result["aiRating.gameImpact"] == 5
    assert result["aiRating.overall"] == 5


def test_skills_cascade_weighted_by_position():
    """Test the position-weighted skill average."""
    rule = cascades()["skills"]
    weights = get_position_weights("Centre")
    skills = {"passing": 8, "defense": 6, "kicking": 4}

    result = rule.update_function(skills, {"rugbyProfile": {"primaryPosition": "Centre"}})

    expected = (8 * weights["passing"] + 6 * weights["defense"] + 4) / (weights["passing"] + weights["defense"] + 1)
    assert result["aiRating.skillset"] == pytest.approx(expected)
    assert result["playerValue.skillsScore"] == pytest.approx(expected)
    assert rule.update_function({}, {}) == {}


def test_unknown_position_falls_back_to_centre():
    """Test that positions outside the table use the Centre weights."""
    assert get_position_weights("Water Carrier") == get_position_weights("Centre")
    assert get_position_weights(None) == get_position_weights("Centre")


def test_medical_appointments_cascade():
    """Test attendance score from recent missed appointments."""
    rule = cascades()["medicalAppointments"]
    recent = TODAY.isoformat()
    appointments = [
        {"id": "a1", "status": "completed", "date": recent},
        {"id": "a2", "status": "completed", "date": recent},
        {"id": "a3", "status": "scheduled", "date": recent},
        {"id": "a4", "status": "missed", "date": recent},
        {"id": "a5", "status": "missed", "date": (TODAY - timedelta(days=120)).isoformat()},
    ]

    result = rule.update_function(appointments, {})

    assert result["playerValue.attendanceScore"] == pytest.approx(7.5)
    assert result["cohesionMetrics.reliability"] == pytest.approx(7.5)
    assert rule.update_function([], {})["playerValue.attendanceScore"] == 10


# =============================================================================
# TABLE CHECKS
# =============================================================================

def test_default_tables_have_no_overlapping_targets():
    """Test that the standard cascade table passes the overlap check."""
    check_cascade_targets(build_cascade_rules())


def test_overlapping_cascade_targets_rejected():
    """Test that two rules deriving the same field are rejected."""
    rules = [
        CascadeRule("injuries", ("status.medical",), lambda value, player: {}),
        CascadeRule("medicalAppointments", ("status.medical",), lambda value, player: {}),
    ]

    with pytest.raises(ValueError, match="status.medical"):
        check_cascade_targets(rules)


def test_validation_rule_is_plain_data():
    """Test that rules are immutable table entries."""
    rule = ValidationRule("skills", lambda value, player: True, "msg")

    assert rule.dependencies == ()
    with pytest.raises(AttributeError):
        rule.field = "status"
