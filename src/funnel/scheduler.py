from __future__ import annotations

import logging
import time

from .accounting import Accounting
from .app_logging import log_with_fields
from .backend import Backend
from .config import AppConfig
from .errors import ConsistencyError, JobMissingError, SyncError
from .jobqueue import Queue
from .models import Job, Location

TRANSIENT_ERRORS = (OSError, SyncError)


class Scheduler:
    def __init__(
        self,
        config: AppConfig,
        backend: Backend,
        logger: logging.Logger,
        queue: Queue | None = None,
        accounting: Accounting | None = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.logger = logger
        self.queue = queue if queue is not None else Queue()
        self.accounting = accounting if accounting is not None else Accounting()
        self._last_queue_len = 0

    def run_forever(self) -> None:
        self.bootstrap()
        while True:
            try:
                self.single_cycle()
            except TRANSIENT_ERRORS as exc:
                log_with_fields(
                    self.logger,
                    logging.WARNING,
                    "cycle_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            time.sleep(self.config.poll.interval_seconds)

    def run_once(self) -> None:
        self.bootstrap()
        self.single_cycle()

    def bootstrap(self) -> None:
        log_with_fields(self.logger, logging.INFO, "funnel_started")
        self.backend.initialize()
        log_with_fields(self.logger, logging.INFO, "backend_locations", **self.backend.describe())
        self.recover_queued()

    def recover_queued(self) -> int:
        count = 0
        for job in self.backend.check_queued():
            log_with_fields(self.logger, logging.INFO, "leftover_found", user=job.user, job_id=job.job_id)
            if self.queue.push(job):
                self.accounting.record_queued(job.user)
                count += 1
        log_with_fields(self.logger, logging.INFO, "leftovers_recovered", count=count)
        self._report_queue_length()
        return count

    def single_cycle(self) -> None:
        # Directories may have been removed behind our back since the last tick.
        created = self.backend.initialize()
        if Location.QUEUED in created:
            self._discard_lost_queue()
        self.retire_finished()
        self.admit_inbox()
        self.schedule()
        self._report_queue_length()

    def admit_inbox(self) -> int:
        admitted = 0
        for job in self.backend.check_inbox():
            if job in self.queue:
                log_with_fields(
                    self.logger,
                    logging.DEBUG,
                    "job_already_tracked",
                    user=job.user,
                    job_id=job.job_id,
                )
                continue
            log_with_fields(self.logger, logging.INFO, "job_found", user=job.user, job_id=job.job_id)
            try:
                queued = self.backend.from_inbox_to_queued(job)
            except OSError as exc:
                log_with_fields(
                    self.logger,
                    logging.ERROR,
                    "job_admission_failed",
                    user=job.user,
                    job_id=job.job_id,
                    error=str(exc),
                )
                continue
            if self.queue.push(queued):
                self.accounting.record_queued(queued.user)
                admitted += 1
        if admitted:
            log_with_fields(self.logger, logging.INFO, "jobs_queued", count=admitted)
        return admitted

    def retire_finished(self) -> list[Job]:
        running = self.queue.running()
        if not running or self.backend.something_running():
            return []
        finished: list[Job] = []
        for job in running:
            done = self.backend.from_running_to_finished(job)
            self.queue.remove(job)
            finished.append(done)
            log_with_fields(self.logger, logging.INFO, "job_finished", user=done.user, job_id=done.job_id)
        return finished

    def schedule(self) -> Job | None:
        if self.backend.something_running():
            return None
        user = self.accounting.next_user()
        if user is None:
            return None

        job = self.queue.take_by_user(user)
        if job is None:
            log_with_fields(
                self.logger,
                logging.CRITICAL,
                "accounting_queue_mismatch",
                user=user,
                queue_length=len(self.queue),
            )
            raise ConsistencyError(f"accounting reports pending work for {user} but the queue holds none")

        try:
            running = self.backend.from_queued_to_running(job)
        except JobMissingError as exc:
            self.accounting.record_lost(job.user)
            log_with_fields(
                self.logger,
                logging.WARNING,
                "queued_job_lost",
                user=job.user,
                job_id=job.job_id,
                error=str(exc),
            )
            return None
        except OSError:
            self.queue.push_front(job)
            raise
        self.accounting.record_scheduled(running.user)
        self.queue.push(running)
        log_with_fields(self.logger, logging.INFO, "job_scheduled", user=running.user, job_id=running.job_id)
        return running

    def _discard_lost_queue(self) -> None:
        dropped = len(self.queue)
        self.queue.dump()
        self.accounting.clear_pending()
        log_with_fields(
            self.logger,
            logging.WARNING,
            "queued_area_lost",
            dropped_jobs=dropped,
            path=self.backend.describe().get(Location.QUEUED.value),
        )

    def _report_queue_length(self) -> None:
        length = len(self.queue)
        if length != self._last_queue_len:
            log_with_fields(self.logger, logging.INFO, "queue_length", length=length)
            self._last_queue_len = length
