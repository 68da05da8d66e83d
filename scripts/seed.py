#!/usr/bin/env python3
"""
RosterGuard Seed Script
=======================

Seeds the database with a demo rugby squad:
- 8 players across forwards and backs
- One player carrying an active injury
- A few accepted update batches per player, so history and integrity
  reports have something to show

Existing players and history are cleared first.

Run with: python scripts/seed.py
"""

import asyncio
from datetime import datetime, timedelta

from sqlalchemy import delete

from rosterguard.config import configure_logging, get_settings
from rosterguard.database import build_engine, build_session_factory, create_tables
from rosterguard.models import DataUpdate, Player, UpdateSource
from rosterguard.schemas import InjuryRecord, TrainingAttendance
from rosterguard.services import IntegrityEngine, PlayerUpdateService

# =============================================================================
# SEED DATA DEFINITIONS
# =============================================================================

SQUAD_DATA = [
    {"id": "player_001", "first": "Tom", "last": "Hartley", "position": "Prop", "jersey": 1,
     "height": 184, "weight": 118, "body_fat": 19.5},
    {"id": "player_002", "first": "Rhys", "last": "Morgan", "position": "Hooker", "jersey": 2,
     "height": 179, "weight": 104, "body_fat": 16.0},
    {"id": "player_003", "first": "Callum", "last": "Reid", "position": "Lock", "jersey": 4,
     "height": 201, "weight": 112, "body_fat": 13.2},
    {"id": "player_004", "first": "Sione", "last": "Tupou", "position": "Flanker", "jersey": 7,
     "height": 189, "weight": 102, "body_fat": 11.8},
    {"id": "player_005", "first": "Liam", "last": "Doyle", "position": "Scrum-half", "jersey": 9,
     "height": 174, "weight": 79, "body_fat": 9.5},
    {"id": "player_006", "first": "James", "last": "Whitfield", "position": "Fly-half", "jersey": 10,
     "height": 181, "weight": 86, "body_fat": 10.1},
    {"id": "player_007", "first": "Marcus", "last": "Adeyemi", "position": "Wing", "jersey": 11,
     "height": 182, "weight": 88, "body_fat": 8.7},
    {"id": "player_008", "first": "Owen", "last": "Price", "position": "Fullback", "jersey": 15,
     "height": 183, "weight": 91, "body_fat": 10.4},
]

SKILLS = ["ballHandling", "passing", "kicking", "defense", "communication"]

def build_document(entry: dict, index: int) -> dict:
    """Initial document for one squad member."""
    today = datetime.utcnow().date()
    return {
        "personalDetails": {
            "firstName": entry["first"],
            "lastName": entry["last"],
            "email": f"{entry['first'].lower()}.{entry['last'].lower()}@example.com",
        },
        "rugbyProfile": {
            "jerseyNumber": entry["jersey"],
            "primaryPosition": entry["position"],
            "yearsInTeam": 1 + index % 6,
        },
        "status": {"medical": "cleared", "availability": "available", "fitness": "good"},
        "injuries": [],
        "medicalAppointments": [],
        "trainingAttendance": [],
        "physicalAttributes": [{
            "date": (today - timedelta(days=60)).isoformat(),
            "height": entry["height"],
            "weight": entry["weight"],
            "bodyFat": entry["body_fat"],
        }],
        "skills": {skill: 5 + (index + offset) % 4 for offset, skill in enumerate(SKILLS)},
        "aiRating": {"overall": 6, "physicality": 6, "skillset": 6, "gameImpact": 6},
        "playerValue": {},
        "cohesionMetrics": {},
    }

# =============================================================================
# SEEDING
# =============================================================================

async def seed_squad(integrity_engine: IntegrityEngine, service: PlayerUpdateService) -> int:
    """Create the squad and run a few update batches per player."""
    today = datetime.utcnow().date()

    for index, entry in enumerate(SQUAD_DATA):
        await integrity_engine.create_player(entry["id"], build_document(entry, index))

        await integrity_engine.process_update(
            entry["id"],
            {"gameStats": [{
                "season": str(today.year),
                "matchesPlayed": 10 + index,
                "tries": index % 5,
                "tackles": 60 + index * 7,
                "minutesPlayed": (10 + index) * 65,
            }]},
            UpdateSource.MANUAL,
            "seed_script",
            reason="Season statistics",
        )

        for day in range(5):
            await service.update_training_attendance(
                TrainingAttendance(
                    id=f"att_{entry['id']}_{day}",
                    player_id=entry["id"],
                    date=(today - timedelta(days=day * 3)).isoformat(),
                    session_type="team_training",
                    status="absent" if (index + day) % 7 == 0 else "present",
                ),
                "seed_script",
            )

    print(f"✓ Seeded {len(SQUAD_DATA)} players")

    # One injured player so the squad has a restricted member
    result = await service.process_injury_update(
        "player_004",
        InjuryRecord(
            id="injury_seed_001",
            injury_type="Hamstring strain",
            status="active",
            date=today.isoformat(),
            severity="moderate",
            body_part="hamstring",
        ),
        "seed_script",
    )
    if result.success:
        print("✓ Recorded active injury for player_004")

    return len(SQUAD_DATA)

# =============================================================================
# MAIN
# =============================================================================

async def main():
    """Main seed function"""
    print("\n" + "="*60)
    print("RosterGuard Database Seeder")
    print("="*60 + "\n")

    settings = get_settings()
    engine = build_engine(settings=settings)
    session_factory = build_session_factory(engine)

    try:
        await create_tables(engine)

        print("Clearing existing data...")
        async with session_factory() as session:
            await session.execute(delete(DataUpdate))
            await session.execute(delete(Player))
            await session.commit()
        print("✓ Cleared existing data\n")

        integrity_engine = IntegrityEngine(session_factory, settings=settings)
        players = await seed_squad(integrity_engine, PlayerUpdateService(integrity_engine))

        print("\n" + "="*60)
        print("Seeding Complete!")
        print("="*60)
        print(f"\nSummary:\n  - {players} players\n")
    finally:
        await engine.dispose()

if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
