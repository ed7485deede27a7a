"""Entry points used by the web layer and by scheduled triggers."""
from datetime import date, datetime

from .models import Assignment, UnselectedWorker
from .schemas import ComplianceScoreSchema, DateWindow, SweepResultSchema, TrendReportSchema
from .scoring import ComplianceService
from .services import AssignmentLifecycleService
from .sweep import OverdueSweepService
from .trends import TrendService


def create_assignments(worker_ids: list[str], assigned_date: date, team: str, team_leader_id: str,
                       due_time=None, notes: str | None = None, unselected=None,
                       cancel_event=None) -> list[Assignment]:
    return AssignmentLifecycleService.create_assignments(
        worker_ids, assigned_date, team, team_leader_id,
        due_time=due_time, notes=notes, unselected=unselected, cancel_event=cancel_event,
    )


def get_worker_assignment(worker_id: str, assigned_date: date | None = None,
                          cancel_event=None) -> Assignment | None:
    return AssignmentLifecycleService.get_worker_assignment(worker_id, assigned_date, cancel_event=cancel_event)


def complete_assignment(assignment_id, submission_id, cancel_event=None) -> Assignment:
    return AssignmentLifecycleService.complete_assignment(assignment_id, submission_id, cancel_event=cancel_event)


def cancel_assignment(assignment_id, cancel_event=None) -> Assignment:
    return AssignmentLifecycleService.cancel_assignment(assignment_id, cancel_event=cancel_event)


def list_unselected_workers(team_leader_id: str, assigned_date: date | None = None,
                            case_status: str | None = None, cancel_event=None) -> list[UnselectedWorker]:
    return AssignmentLifecycleService.list_unselected_workers(
        team_leader_id, assigned_date, case_status=case_status, cancel_event=cancel_event,
    )


def close_unselected_worker_case(case_id, team_leader_id: str, cancel_event=None) -> UnselectedWorker:
    return AssignmentLifecycleService.close_unselected_worker_case(
        case_id, team_leader_id, cancel_event=cancel_event,
    )


def compute_compliance_score(team: str, window: DateWindow, cancel_event=None) -> ComplianceScoreSchema:
    return ComplianceService.compute_compliance_score(
        team, window.start_date, window.end_date, cancel_event=cancel_event,
    )


def compute_trend(team: str, window: DateWindow, cancel_event=None) -> TrendReportSchema:
    return TrendService.compute_trend(team, window.start_date, window.end_date, cancel_event=cancel_event)


def run_overdue_sweep(now: datetime | None = None) -> SweepResultSchema:
    return OverdueSweepService.run_once(now=now)
