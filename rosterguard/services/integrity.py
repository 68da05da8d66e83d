"""
Integrity Engine
================

Single choke point for every write to a player document:

    load -> check paths -> validate -> fold series -> cascade -> merge
         -> persist document + history row (one transaction) -> notify

Validation collects every violated rule before rejecting a batch, so a
caller can fix several problems in one round trip. Rules see the document
as the batch would leave it, and the merged result (cascades included) is
checked once more so that no batch can introduce a cleared-but-injured or
available-but-restricted player. Nothing is written unless the whole
batch is accepted.

There is no version check between the read and the write-back: two
concurrent batches for the same player can overwrite each other.
"""

import copy
import inspect
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rosterguard.config import Settings, get_settings
from rosterguard.exceptions import PlayerExistsError, PlayerNotFoundError
from rosterguard.models import DataUpdate, Player, UpdateCategory, UpdateSource
from rosterguard.paths import (
    MISSING, PathError, fold_series_fields, get_path, resolve_update_values, set_path, unknown_paths,
)
from rosterguard.schemas import (
    DataUpdateRead, ImpactAnalysis, IntegrityReport, UpdateErrorType, UpdateResult, ValidationReport,
)
from rosterguard.services.rules import (
    CascadeRule, ValidationRule, availability_conflict, build_cascade_rules, build_validation_rules,
    check_cascade_targets, clearance_conflict, parse_date, status_conflicts,
)

logger = logging.getLogger(__name__)


PLAYER_NOT_FOUND = "Player not found"

# Fields whose change is reported to audit listeners
SIGNIFICANT_FIELDS = (
    "status.medical",
    "status.availability",
    "injuries",
    "aiRating.overall",
    "playerValue.totalScore",
)

# First match wins
CATEGORY_NAMESPACES: Sequence[Tuple[UpdateCategory, Tuple[str, ...]]] = (
    (UpdateCategory.PERSONAL, ("personalDetails", "rugbyProfile")),
    (UpdateCategory.PHYSICAL, ("physicalAttributes", "physicalMetrics", "testResults")),
    (UpdateCategory.MEDICAL, ("injuries", "medicalAppointments", "medicalNotes")),
    (UpdateCategory.PERFORMANCE, ("gameStats", "gpsData", "trainingAttendance", "liveMatchData", "currentMatch")),
    (UpdateCategory.SKILLS, ("skills",)),
    (UpdateCategory.AI_RATING, ("aiRating", "aiAnalysis")),
    (UpdateCategory.AVAILABILITY, ("status",)),
)

AFFECTED_METRICS: Sequence[Tuple[str, str]] = (
    ("playerValue", "Player Value Analysis"),
    ("aiRating", "AI Performance Rating"),
    ("cohesionMetrics", "Team Cohesion Score"),
    ("status", "Availability Status"),
)

Listener = Callable[[DataUpdateRead], Any]


def _under(key: str, field: str) -> bool:
    return key == field or key.startswith(field + ".")


def categorize_update(keys: Iterable[str]) -> UpdateCategory:
    """Category of a batch from the namespaces its keys fall under."""
    keys = list(keys)
    for category, namespaces in CATEGORY_NAMESPACES:
        if any(_under(key, ns) for key in keys for ns in namespaces):
            return category
    return UpdateCategory.PERSONAL


def affected_metrics(keys: Iterable[str]) -> List[str]:
    """Human-readable metric labels touched by a set of changed paths."""
    labels: List[str] = []
    for key in keys:
        for namespace, label in AFFECTED_METRICS:
            if _under(key, namespace) and label not in labels:
                labels.append(label)
    return labels


def is_significant_change(keys: Iterable[str]) -> bool:
    return any(_under(key, field) for key in keys for field in SIGNIFICANT_FIELDS)


class IntegrityEngine:
    """
    Validates, cascades and persists player update batches.

    Rule tables default to the standard ones from ``services.rules``;
    pass explicit tables to test or extend the engine.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        validation_rules: Optional[Sequence[ValidationRule]] = None,
        cascade_rules: Optional[Sequence[CascadeRule]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._session_factory = session_factory
        self.settings = settings or get_settings()
        self._clock = clock
        self._last_timestamp: Optional[datetime] = None
        self._listeners: List[Listener] = []

        if validation_rules is None:
            validation_rules = build_validation_rules(jersey_taken=self.jersey_number_taken)
        if cascade_rules is None:
            cascade_rules = build_cascade_rules(
                recent_window_days=self.settings.recent_window_days,
                clock=self._clock,
            )
        check_cascade_targets(cascade_rules)

        self.validation_rules: List[ValidationRule] = list(validation_rules)
        self.cascade_rules: List[CascadeRule] = list(cascade_rules)

    # =========================================================================
    # PLAYER DOCUMENTS
    # =========================================================================

    def now(self) -> datetime:
        return self._clock()

    def add_listener(self, listener: Listener) -> None:
        """Register a callable invoked with each significant history entry."""
        self._listeners.append(listener)

    async def create_player(self, player_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Store a new player document (seed/import path, no history entry)."""
        document = copy.deepcopy(document)
        document["id"] = player_id

        async with self._session_factory() as session:
            session.add(Player(id=player_id, document=document))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise PlayerExistsError(player_id)

        logger.info(f"Created player {player_id}")
        return document

    async def get_player(self, player_id: str) -> Dict[str, Any]:
        async with self._session_factory() as session:
            row = await session.get(Player, player_id)
            if row is None:
                raise PlayerNotFoundError(player_id)
            return self._snapshot(row)

    async def jersey_number_taken(self, number: int, player_id: Optional[str]) -> bool:
        """Whether any other player already wears ``number``."""
        async with self._session_factory() as session:
            result = await session.execute(select(Player.id, Player.document))
            for other_id, document in result:
                if other_id == player_id:
                    continue
                if get_path(document or {}, "rugbyProfile.jerseyNumber", None) == number:
                    return True
        return False

    @staticmethod
    def _snapshot(row: Player) -> Dict[str, Any]:
        document = copy.deepcopy(row.document or {})
        document["id"] = row.id
        return document

    async def _load(self, player_id: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            row = await session.get(Player, player_id)
            return self._snapshot(row) if row is not None else None

    # =========================================================================
    # UPDATE PIPELINE
    # =========================================================================

    async def process_update(
        self,
        player_id: str,
        updates: Dict[str, Any],
        source: UpdateSource,
        updated_by: str,
        reason: Optional[str] = None,
    ) -> UpdateResult:
        """
        Validate, cascade and persist one update batch.

        Never raises for bad input or database failures; the outcome is
        reported through the returned UpdateResult.
        """
        source = UpdateSource(source)

        current = await self._load(player_id)
        if current is None:
            return UpdateResult(
                success=False, errors=[PLAYER_NOT_FOUND], error_type=UpdateErrorType.NOT_FOUND
            )

        errors = await self.validate(updates, current)
        if errors:
            logger.warning(f"Rejected update for player {player_id} from {source.value}: {errors}")
            return UpdateResult(success=False, errors=errors, error_type=UpdateErrorType.VALIDATION)

        timestamp = self._next_timestamp()
        final_updates, _ = self._compute_final_updates(updates, current, timestamp)

        try:
            merged = self.merge_updates(current, final_updates)
        except PathError as e:
            return UpdateResult(success=False, errors=[str(e)], error_type=UpdateErrorType.VALIDATION)

        conflicts = self.introduced_conflicts(current, merged)
        if conflicts:
            logger.warning(f"Rejected update for player {player_id} from {source.value}: {conflicts}")
            return UpdateResult(success=False, errors=conflicts, error_type=UpdateErrorType.VALIDATION)

        history = DataUpdate(
            id=f"update_{int(timestamp.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            timestamp=timestamp,
            source=source,
            category=categorize_update(updates),
            player_id=player_id,
            previous_value={key: get_path(current, key, None) for key in final_updates},
            new_value=final_updates,
            updated_by=updated_by,
            reason=reason,
            affected_metrics=affected_metrics(final_updates),
        )

        try:
            async with self._session_factory() as session:
                row = await session.get(Player, player_id)
                if row is None:
                    return UpdateResult(
                        success=False, errors=[PLAYER_NOT_FOUND], error_type=UpdateErrorType.NOT_FOUND
                    )
                row.document = merged
                session.add(history)
                await session.flush()
                await self._apply_retention(session, player_id)
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to persist update for player {player_id}")
            return UpdateResult(
                success=False, errors=[f"Database error: {e}"], error_type=UpdateErrorType.PERSISTENCE
            )

        record = DataUpdateRead.model_validate(history)
        if is_significant_change(final_updates):
            await self._notify(record)

        return UpdateResult(success=True)

    async def validate(self, updates: Dict[str, Any], current: Dict[str, Any]) -> List[str]:
        """Every error message the batch triggers against the proposed document."""
        errors = [f"Unknown field path: {path}" for path in unknown_paths(updates)]
        proposed = self.propose(current, updates)

        for rule in self.validation_rules:
            for value in resolve_update_values(updates, rule.field):
                outcome = rule.validator(value, proposed)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if not outcome:
                    errors.append(rule.error_message)
                    break

        return errors

    def apply_cascades(self, updates: Dict[str, Any], current: Dict[str, Any], timestamp: datetime) -> Dict[str, Any]:
        """Derived field values implied by the batch's source fields."""
        derived: Dict[str, Any] = {}
        stamp = timestamp.isoformat()

        for rule in self.cascade_rules:
            value = self._cascade_source_value(updates, current, rule.source_field)
            if value is MISSING:
                continue
            produced = rule.update_function(value, current)
            stray = set(produced) - set(rule.target_fields)
            if stray:
                raise ValueError(f"Cascade '{rule.source_field}' produced undeclared fields: {sorted(stray)}")
            derived.update(produced)
            if produced and rule.stamp:
                derived[rule.stamp] = stamp

        return derived

    def _compute_final_updates(
        self,
        updates: Dict[str, Any],
        current: Dict[str, Any],
        timestamp: datetime,
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        folded, _ = fold_series_fields(updates, current, timestamp.date().isoformat())
        cascaded = self.apply_cascades(folded, current, timestamp)
        # Cascade values win over caller values for the same key
        final_updates = dict(folded)
        final_updates.update(cascaded)
        return final_updates, cascaded

    @staticmethod
    def _cascade_source_value(updates: Dict[str, Any], current: Dict[str, Any], source: str) -> Any:
        if source in updates:
            return updates[source]

        children = {key: value for key, value in updates.items() if key.startswith(source + ".")}
        if not children:
            return MISSING

        # Child writes ("skills.passing", "medicalAppointments.apt_1") are
        # applied to the stored value so the rule sees the complete set.
        scratch = {}
        existing = get_path(current, source)
        if existing is not MISSING:
            scratch[source] = copy.deepcopy(existing)
        try:
            for key, value in children.items():
                set_path(scratch, key, value)
        except PathError:
            return MISSING
        return scratch.get(source, MISSING)

    @staticmethod
    def merge_updates(current: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
        """Deep copy of the document with every update path written."""
        merged = copy.deepcopy(current)
        for key, value in updates.items():
            set_path(merged, key, copy.deepcopy(value))
        return merged

    @staticmethod
    def propose(current: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        The document as the caller's writes would leave it, before cascades.

        Series writes (``physicalAttributes.weight``) are not folded yet and
        other unplaceable paths are skipped; merge_updates reports those.
        """
        proposed = copy.deepcopy(current)
        for key, value in updates.items():
            try:
                set_path(proposed, key, copy.deepcopy(value))
            except PathError:
                continue
        return proposed

    @staticmethod
    def introduced_conflicts(current: Dict[str, Any], merged: Dict[str, Any]) -> List[str]:
        """Status invariants the merged document breaks that the stored one did not."""
        existing = set(status_conflicts(current))
        return [message for message in status_conflicts(merged) if message not in existing]

    def _next_timestamp(self) -> datetime:
        """Batch timestamps are strictly increasing within one engine."""
        now = self._clock()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    async def _apply_retention(self, session: AsyncSession, player_id: str) -> None:
        keep = self.settings.history_retention_per_player
        if keep <= 0:
            return
        result = await session.execute(
            select(DataUpdate.seq)
            .where(DataUpdate.player_id == player_id)
            .order_by(DataUpdate.timestamp.desc(), DataUpdate.seq.desc())
        )
        stale = result.scalars().all()[keep:]
        if stale:
            await session.execute(delete(DataUpdate).where(DataUpdate.seq.in_(stale)))

    async def _notify(self, record: DataUpdateRead) -> None:
        logger.info(
            f"Significant player data change: player={record.player_id} "
            f"category={record.category.value} source={record.source.value} "
            f"affected={record.affected_metrics} timestamp={record.timestamp.isoformat()}"
        )
        for listener in self._listeners:
            try:
                outcome = listener(record)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception(f"Significant-change listener failed for update {record.id}")

    # =========================================================================
    # READ-ONLY OPERATIONS
    # =========================================================================

    async def validate_update(self, player_id: str, updates: Dict[str, Any]) -> ValidationReport:
        """Dry run: validation and cascade preview without persisting anything."""
        current = await self._load(player_id)
        if current is None:
            return ValidationReport(valid=False, errors=[PLAYER_NOT_FOUND])

        errors = await self.validate(updates, current)
        if errors:
            return ValidationReport(valid=False, errors=errors)

        final_updates, cascaded = self._compute_final_updates(updates, current, self._clock())
        try:
            merged = self.merge_updates(current, final_updates)
        except PathError as e:
            return ValidationReport(valid=False, errors=[str(e)])

        conflicts = self.introduced_conflicts(current, merged)
        if conflicts:
            return ValidationReport(valid=False, errors=conflicts)

        return ValidationReport(valid=True, cascading_updates=cascaded)

    async def analyze_impact(self, player_id: str, updates: Dict[str, Any]) -> ImpactAnalysis:
        """Which fields and metrics a batch would touch, and how risky it is."""
        current = await self._load(player_id)
        if current is None:
            raise PlayerNotFoundError(player_id)

        final_updates, cascaded = self._compute_final_updates(updates, current, self._clock())

        if any(_under(key, "injuries") or _under(key, "status.medical") for key in final_updates):
            risk_level = "high"
        elif is_significant_change(final_updates):
            risk_level = "medium"
        else:
            risk_level = "low"

        return ImpactAnalysis(
            direct_updates=list(updates),
            cascading_updates=list(cascaded),
            affected_metrics=affected_metrics(final_updates),
            risk_level=risk_level,
        )

    async def get_history(
        self,
        player_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[DataUpdateRead]:
        """Accepted batches for a player, newest first."""
        if limit is None:
            limit = self.settings.history_default_limit
        limit = max(0, min(limit, self.settings.history_max_limit))

        async with self._session_factory() as session:
            result = await session.execute(
                select(DataUpdate)
                .where(DataUpdate.player_id == player_id)
                .order_by(DataUpdate.timestamp.desc(), DataUpdate.seq.desc())
                .offset(max(0, offset))
                .limit(limit)
            )
            return [DataUpdateRead.model_validate(row) for row in result.scalars().all()]

    async def generate_integrity_report(self, player_id: str) -> IntegrityReport:
        """Heuristic consistency scan of a stored player document."""
        player = await self._load(player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)

        issues: List[str] = []
        recommendations: List[str] = []
        now = self._clock()

        if clearance_conflict(player):
            issues.append("Medical status shows cleared but active injuries exist")
            recommendations.append("Review and update medical status or injury records")

        if availability_conflict(player):
            issues.append("Availability shows available while medically restricted")
            recommendations.append("Reconcile availability with medical and fitness status")

        last_rated = parse_date(get_path(player, "aiRating.lastUpdated", None))
        if last_rated is not None and (now.date() - last_rated).days > self.settings.ai_rating_stale_days:
            issues.append(f"AI rating has not been updated in over {self.settings.ai_rating_stale_days} days")
            recommendations.append("Schedule AI rating refresh")

        if not player.get("physicalAttributes"):
            issues.append("No recent physical attributes recorded")
            recommendations.append("Schedule physical assessment")

        if not player.get("gameStats"):
            issues.append("No game statistics recorded")
            recommendations.append("Update match performance data")

        return IntegrityReport(
            consistency_score=max(0, 100 - len(issues) * 10),
            issues=issues,
            recommendations=recommendations,
            last_validation=now,
        )
