"""
Team compliance scoring.

Rates are expressed over *decided* assignments (total minus still-pending
ones) so that teams with many not-yet-due assignments are not penalised.
The score is the sum of six stepped components:

==================  ======  =================================================
component           points  input
==================  ======  =================================================
completion          0..35   completed / decided
on-time             0..25   see ``ON_TIME_BASIS`` below
late rate           -5..15  overdue / decided (above 40 % subtracts 5)
volume bonus        0..10   decided sample size
improvement bonus   0..10   completion and on-time rates together
grace period bonus  0 or 5  teams with fewer than 50 assignments
==================  ======  =================================================

``ON_TIME_BASIS = "completion"`` (default) computes the on-time rate with
the completion formula, so late completions still count as on time.
``"strict"`` counts only completions made before the deadline. The strict
rate is always reported in the breakdown so the two can be compared.

Threshold checks use integer cross-multiplication, so a rate sitting exactly
on a band edge always lands in the higher band.
"""
import logging
from collections import defaultdict
from datetime import date

import numpy as np
from inequality import gini  # type: ignore

from .conf import readiness_setting
from .exceptions import InvariantViolation, ValidationError
from .models import Assignment, AssignmentStatus
from .schemas import (
    ComplianceBreakdownSchema, ComplianceCounts, ComplianceRatingSchema,
    ComplianceScoreSchema, FairCalculationSchema,
)
from .store import AssignmentStore
from .timeutils import check_window

logger = logging.getLogger(__name__)

# (minimum percentage, points)
COMPLETION_STEPS = [
    (95, 35), (90, 32), (85, 28), (80, 25), (75, 21), (70, 18),
    (60, 14), (50, 10), (40, 7), (30, 4), (20, 2),
]
ON_TIME_STEPS = [
    (95, 25), (90, 22), (85, 19), (80, 16), (75, 13), (70, 10),
    (60, 8), (50, 6), (40, 4), (30, 2), (20, 1),
]
# (maximum percentage, points)
LATE_RATE_STEPS = [(5, 15), (10, 12), (15, 9), (20, 6), (30, 3), (40, 0)]
CHRONIC_LATENESS_POINTS = -5
# (minimum decided assignments, points)
VOLUME_STEPS = [(100, 10), (80, 8), (60, 6), (40, 4), (20, 2)]
# (minimum completion %, minimum on-time %, points)
IMPROVEMENT_STEPS = [(80, 70, 10), (60, 50, 7), (40, 30, 4), (20, 15, 2)]
GRACE_PERIOD_MAX_TOTAL = 50
GRACE_PERIOD_POINTS = 5

GRADE_BANDS = [
    (95, "A+", "Outstanding Performance"),
    (90, "A", "Excellent Performance"),
    (85, "A-", "Very Good Performance"),
    (80, "B+", "Good Performance"),
    (75, "B", "Above Average Performance"),
    (70, "B-", "Average Performance"),
    (65, "C+", "Below Average Performance"),
    (60, "C", "Needs Improvement"),
    (55, "C-", "Poor Performance"),
    (50, "D", "Very Poor Performance"),
]
FAILING_GRADE = ("F", "Critical Performance Issues")

ON_TIME_BASES = ("completion", "strict")


def _at_least(numerator: int, denominator: int, percent: int) -> bool:
    return denominator > 0 and numerator * 100 >= percent * denominator


def _at_most(numerator: int, denominator: int, percent: int) -> bool:
    return numerator * 100 <= percent * denominator


def _percent(numerator: int, denominator: int) -> float:
    return round(numerator * 100 / denominator, 2) if denominator else 0.0


def stepped_points(numerator: int, denominator: int, steps) -> int:
    for percent, points in steps:
        if _at_least(numerator, denominator, percent):
            return points
    return 0


def completion_points(completed: int, decided: int) -> int:
    return stepped_points(completed, decided, COMPLETION_STEPS)


def on_time_points(on_time: int, decided: int) -> int:
    return stepped_points(on_time, decided, ON_TIME_STEPS)


def late_rate_points(overdue: int, decided: int) -> int:
    for percent, points in LATE_RATE_STEPS:
        if _at_most(overdue, decided, percent):
            return points
    return CHRONIC_LATENESS_POINTS


def volume_bonus(decided: int) -> int:
    for minimum, points in VOLUME_STEPS:
        if decided >= minimum:
            return points
    return 0


def improvement_bonus(completed: int, on_time: int, decided: int) -> int:
    for completion_pct, on_time_pct, points in IMPROVEMENT_STEPS:
        if _at_least(completed, decided, completion_pct) and _at_least(on_time, decided, on_time_pct):
            return points
    return 0


def grace_period_bonus(total: int) -> int:
    return GRACE_PERIOD_POINTS if total < GRACE_PERIOD_MAX_TOTAL else 0


def letter_grade(score: int) -> tuple[str, str]:
    for minimum, grade, description in GRADE_BANDS:
        if score >= minimum:
            return grade, description
    return FAILING_GRADE


def validate_counts(counts: ComplianceCounts) -> None:
    """Fail fast on counts that cannot come from a real assignment set."""
    values = counts.model_dump()
    negative = [name for name, value in values.items() if value < 0]
    if negative:
        raise InvariantViolation(f"Negative assignment counts: {', '.join(negative)}")
    if counts.completed + counts.overdue + counts.pending != counts.total:
        raise InvariantViolation(
            f"completed ({counts.completed}) + overdue ({counts.overdue}) + "
            f"pending ({counts.pending}) != total ({counts.total})"
        )
    if counts.on_time_completed > counts.completed:
        raise InvariantViolation(
            f"on_time_completed ({counts.on_time_completed}) > completed ({counts.completed})"
        )


def score_compliance(counts: ComplianceCounts, on_time_basis: str | None = None) -> ComplianceRatingSchema:
    """Score one team's counts. Pure: no store access, no clock."""
    on_time_basis = on_time_basis or readiness_setting("ON_TIME_BASIS")
    if on_time_basis not in ON_TIME_BASES:
        raise ValidationError(f"Unknown on-time basis: {on_time_basis!r}")
    validate_counts(counts)

    decided = counts.total - counts.pending
    on_time = counts.completed if on_time_basis == "completion" else counts.on_time_completed

    components = {
        "completion_score": completion_points(counts.completed, decided),
        "on_time_score": on_time_points(on_time, decided),
        "late_penalty": late_rate_points(counts.overdue, decided),
        "volume_bonus": volume_bonus(decided),
        "improvement_bonus": improvement_bonus(counts.completed, on_time, decided),
        "grace_period_bonus": grace_period_bonus(counts.total),
    }
    raw_score = sum(components.values())
    score = max(0, min(100, raw_score))
    grade, description = letter_grade(score)

    return ComplianceRatingSchema(
        score=score,
        grade=grade,
        description=description,
        breakdown=ComplianceBreakdownSchema(
            **components,
            raw_score=raw_score,
            fair_calculation=FairCalculationSchema(
                decided_assignments=decided,
                fair_completion_rate=_percent(counts.completed, decided),
                fair_on_time_rate=_percent(on_time, decided),
                strict_on_time_rate=_percent(counts.on_time_completed, decided),
                late_rate=_percent(counts.overdue, decided),
                on_time_basis=on_time_basis,
            ),
        ),
    )


class ComplianceService:
    """Service class for team compliance scores."""

    store = AssignmentStore

    @staticmethod
    def count_assignments(assignments) -> ComplianceCounts:
        """Partition assignments by status; cancelled ones are left out entirely."""
        counted = [a for a in assignments if a.status != AssignmentStatus.CANCELLED]
        completed = [a for a in counted if a.status == AssignmentStatus.COMPLETED]
        return ComplianceCounts(
            total=len(counted),
            completed=len(completed),
            overdue=sum(1 for a in counted if a.status == AssignmentStatus.OVERDUE),
            pending=sum(1 for a in counted if a.status == AssignmentStatus.PENDING),
            on_time_completed=sum(1 for a in completed if a.is_on_time),
        )

    @staticmethod
    def worker_completion_rates(assignments: list[Assignment]) -> list[float]:
        """Fair completion rate of every worker with at least one decided assignment."""
        decided = defaultdict(int)
        completed = defaultdict(int)
        for a in assignments:
            if a.status in (AssignmentStatus.COMPLETED, AssignmentStatus.OVERDUE):
                decided[a.worker_id] += 1
                if a.status == AssignmentStatus.COMPLETED:
                    completed[a.worker_id] += 1
        return [completed[w] / decided[w] for w in sorted(decided)]

    @staticmethod
    def _calculate_gini_coefficient(values):
        """Calculate Gini coefficient for a list of values."""
        if not values or len(values) == 1 or not any(values):
            return 0.0
        return float(gini.Gini(np.asarray(values, dtype=float)).g)

    @classmethod
    def compute_compliance_score(cls, team: str, start_date: date, end_date: date,
                                 on_time_basis: str | None = None,
                                 cancel_event=None) -> ComplianceScoreSchema:
        check_window(start_date, end_date)
        assignments = cls.store.list_by_team(team, start_date, end_date, cancel_event=cancel_event)

        counts = cls.count_assignments(assignments)
        rating = score_compliance(counts, on_time_basis)
        completion_gini = cls._calculate_gini_coefficient(cls.worker_completion_rates(assignments))

        logger.info(
            "Compliance score for %s %s..%s: %s (%s) from %d assignment(s)",
            team, start_date, end_date, rating.score, rating.grade, counts.total,
        )
        return ComplianceScoreSchema(
            team=team,
            start_date=start_date,
            end_date=end_date,
            counts=counts,
            score=rating.score,
            grade=rating.grade,
            description=rating.description,
            breakdown=rating.breakdown,
            completion_gini=round(completion_gini, 3),
        )
