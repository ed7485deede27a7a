class ReadinessError(Exception):
    """Base class for every error raised by the readiness engine."""


class ValidationError(ReadinessError):
    """Bad caller input. Surfaced directly, never retried."""


class DuplicateAssignmentError(ValidationError):
    def __init__(self, worker_ids, assigned_date):
        self.worker_ids = sorted(worker_ids)
        self.assigned_date = assigned_date
        super().__init__(
            f"Workers already have an active assignment for {assigned_date}: "
            f"{', '.join(self.worker_ids)}"
        )


class UnknownWorkerError(ValidationError):
    """Workers that are not active members of the team leader's team."""

    def __init__(self, worker_ids, team):
        self.worker_ids = sorted(worker_ids)
        self.team = team
        super().__init__(f"Workers do not belong to team {team}: {', '.join(self.worker_ids)}")


class AssignmentNotFound(ReadinessError):
    def __init__(self, assignment_id):
        self.assignment_id = assignment_id
        super().__init__(f"Assignment {assignment_id} not found")


class UnselectedCaseNotFound(ReadinessError):
    def __init__(self, case_id):
        self.case_id = case_id
        super().__init__(f"Unselected worker case {case_id} not found")


class ConflictError(ReadinessError):
    """A compare-and-swap on assignment status lost the race."""

    def __init__(self, assignment_id, expected, actual=None):
        self.assignment_id = assignment_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Assignment {assignment_id} is no longer {expected!r}"
            + (f" (now {actual!r})" if actual else "")
        )


class StoreUnavailableError(ReadinessError):
    """The backing store could not be reached."""


class NotificationDeliveryError(ReadinessError):
    """A notification backend failed. Never propagated past the dispatcher."""


class InvariantViolation(ReadinessError):
    """Scoring input or trend output broke an internal invariant."""


class OperationCancelled(ReadinessError):
    """The caller's cancellation signal was set before a store call ran."""
