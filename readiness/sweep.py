import logging
import time
from datetime import datetime

from django.utils import timezone

from .conf import readiness_setting
from .exceptions import ConflictError, ReadinessError, StoreUnavailableError
from .models import Assignment, JobRun
from .schemas import SweepResultSchema
from .services import AssignmentLifecycleService
from .store import AssignmentStore
from .timeutils import to_local

logger = logging.getLogger(__name__)

JOB_TYPE = "mark_overdue_assignments"

PROCESSED = "processed"
CONFLICT  = "conflict"
FAILED    = "failed"


class OverdueSweepService:
    """
    Moves pending assignments past their deadline to overdue.

    Every run claims a job id derived from the local date and hour. The claim
    is an insert into a unique column, so a second trigger within the same
    hour (another instance, a manual re-run) finds the id taken and returns
    a skipped result without touching any assignment.
    """

    store = AssignmentStore
    lifecycle = AssignmentLifecycleService

    @staticmethod
    def job_id_for(now: datetime, salt: str | None = None) -> str:
        local = to_local(now)
        salt = salt or readiness_setting("SWEEP_JOB_SALT")
        return f"{salt}-{local:%Y-%m-%d}-{local:%H}"

    @classmethod
    def run_once(cls, now: datetime | None = None, salt: str | None = None,
                 sleep=time.sleep) -> SweepResultSchema:
        now = now or timezone.now()
        job_id = cls.job_id_for(now, salt)

        job_run = cls.store.claim_job_run(job_id, JOB_TYPE, now)
        if job_run is None:
            logger.info("Overdue sweep %s already ran, skipping", job_id)
            return SweepResultSchema(job_id=job_id, skipped=True, status="skipped")

        try:
            candidates = cls.store.list_overdue_candidates(now)
        except Exception:
            logger.error("Overdue sweep %s could not list candidates", job_id)
            cls._finish(job_run, JobRun.Status.FAILED)
            raise

        logger.info("Overdue sweep %s found %d candidate(s)", job_id, len(candidates))
        outcomes = {PROCESSED: 0, CONFLICT: 0}
        failed_ids = []
        status = JobRun.Status.FAILED
        try:
            for assignment in candidates:
                outcome = cls._sweep_one(assignment, now, sleep)
                if outcome == FAILED:
                    failed_ids.append(str(assignment.id))
                else:
                    outcomes[outcome] += 1
            status = JobRun.Status.PARTIAL if failed_ids else JobRun.Status.COMPLETED
        finally:
            # A job row is never left "running"
            cls._finish(job_run, status, outcomes[PROCESSED], outcomes[CONFLICT], len(failed_ids))
        logger.info(
            "Overdue sweep %s %s: %d marked overdue, %d already moved on, %d failed",
            job_id, status, outcomes[PROCESSED], outcomes[CONFLICT], len(failed_ids),
        )
        return SweepResultSchema(
            job_id=job_id,
            skipped=False,
            status=str(status),
            processed_count=outcomes[PROCESSED],
            conflict_count=outcomes[CONFLICT],
            failed_ids=failed_ids,
        )

    @classmethod
    def _sweep_one(cls, assignment: Assignment, now: datetime, sleep) -> str:
        max_attempts = readiness_setting("SWEEP_MAX_RETRIES")
        backoff_base = readiness_setting("SWEEP_BACKOFF_SECONDS")
        for attempt in range(1, max_attempts + 1):
            try:
                cls.lifecycle.mark_overdue(assignment, now)
                return PROCESSED
            except ConflictError:
                # Completed or cancelled concurrently; nothing left to do
                return CONFLICT
            except StoreUnavailableError as e:
                if attempt == max_attempts:
                    logger.error(
                        "Assignment %s not marked overdue after %d attempt(s): %s",
                        assignment.id, max_attempts, e,
                    )
                    break
                backoff = backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "Assignment %s attempt %d/%d failed: %s. Backoff %ss",
                    assignment.id, attempt, max_attempts, e, backoff,
                )
                sleep(backoff)
            except ReadinessError as e:
                # Not retryable, e.g. the row was deleted mid-sweep
                logger.error("Assignment %s not marked overdue: %s", assignment.id, e)
                break
        return FAILED

    @classmethod
    def _finish(cls, job_run: JobRun, status: str, processed: int = 0,
                conflicts: int = 0, failures: int = 0) -> None:
        try:
            cls.store.finish_job_run(job_run, status, processed, conflicts, failures)
        except StoreUnavailableError as e:
            logger.error("Could not record outcome of job %s: %s", job_run.job_id, e)

    @classmethod
    def run_forever(cls, interval: int | None = None, salt: str | None = None,
                    sleep=time.sleep, max_ticks: int | None = None) -> int:
        """Run the sweep on a fixed interval; a failing tick never stops the next."""
        interval = interval or readiness_setting("SWEEP_INTERVAL_SECONDS")
        logger.info("Overdue sweep loop started (interval=%ss)", interval)
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            try:
                cls.run_once(salt=salt, sleep=sleep)
            except Exception as e:
                logger.exception("Overdue sweep tick failed: %s", e)
            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                sleep(interval)
        return ticks
