from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from .app_logging import log_with_fields
from .errors import JobMissingError
from .models import Job, JobStatus, Location
from .sync import SyncOracle, SyncStatus
from .utils import ensure_dir, is_empty, list_job_files, list_user_dirs


class Backend(ABC):
    """Durable storage of jobs and the only place their state transitions happen."""

    @abstractmethod
    def describe(self) -> dict[str, str]:
        """Locations used by this backend, for the startup banner"""

    @abstractmethod
    def initialize(self) -> set[Location]:
        """Ensure every location exists. Returns the locations that had to be created."""

    @abstractmethod
    def check_inbox(self) -> list[Job]:
        """Inbox jobs that are fully synchronized and may be admitted"""

    @abstractmethod
    def check_queued(self) -> list[Job]:
        """Jobs admitted before a restart but never dispatched"""

    @abstractmethod
    def from_inbox_to_queued(self, job: Job) -> Job:
        """Admit an Inbox job. Raises `InvalidTransitionError` for any other status."""

    @abstractmethod
    def from_queued_to_running(self, job: Job) -> Job:
        """Put a Queued job into the free execution slot. Raises `JobMissingError` if its file is gone."""

    @abstractmethod
    def from_running_to_finished(self, job: Job) -> Job:
        """Mark a Running job as finished. Raises `InvalidTransitionError` for any other status."""

    @abstractmethod
    def something_running(self) -> bool:
        """Whether the execution slot is occupied"""


class FilesystemBackend(Backend):
    """
    Jobs live as files in `inbox/<user>/` and `queued/<user>/`. The execution
    slot is the `outbox` directory, holding at most one file named `slot_name`.
    """

    def __init__(
        self,
        inbox: Path,
        queued: Path,
        outbox: Path,
        oracle: SyncOracle,
        logger: logging.Logger,
        slot_name: str = "external.seq",
    ) -> None:
        self.inbox = inbox
        self.queued = queued
        self.outbox = outbox
        self.oracle = oracle
        self.logger = logger
        self.slot_name = slot_name

    @property
    def locations(self) -> dict[Location, Path]:
        return {
            Location.INBOX: self.inbox,
            Location.QUEUED: self.queued,
            Location.OUTBOX: self.outbox,
        }

    def describe(self) -> dict[str, str]:
        return {location.value: str(path) for location, path in self.locations.items()}

    def initialize(self) -> set[Location]:
        created: set[Location] = set()
        for location, path in self.locations.items():
            if ensure_dir(path):
                created.add(location)
                log_with_fields(
                    self.logger,
                    logging.WARNING,
                    "directory_recreated",
                    location=location.value,
                    path=str(path),
                )
        return created

    def check_inbox(self) -> list[Job]:
        out: list[Job] = []
        for user_dir in list_user_dirs(self.inbox):
            for job_path in list_job_files(user_dir):
                status = self.oracle.status(job_path)
                if status is not SyncStatus.SYNCED:
                    log_with_fields(
                        self.logger,
                        logging.DEBUG,
                        "job_not_synced",
                        user=user_dir.name,
                        job_id=job_path.name,
                        sync_status=status.value,
                    )
                    continue
                out.append(Job(user_dir.name, job_path.name, JobStatus.INBOX))
        return out

    def check_queued(self) -> list[Job]:
        return [
            Job(user_dir.name, job_path.name, JobStatus.QUEUED)
            for user_dir in list_user_dirs(self.queued)
            for job_path in list_job_files(user_dir)
        ]

    def from_inbox_to_queued(self, job: Job) -> Job:
        queued_job = job.to_queued()
        source = self.inbox / job.user / job.job_id
        user_dir = self.queued / job.user
        ensure_dir(user_dir)
        source.rename(user_dir / job.job_id)
        return queued_job

    def from_queued_to_running(self, job: Job) -> Job:
        running_job = job.to_running()
        source = self.queued / job.user / job.job_id
        if not source.is_file():
            raise JobMissingError(f"queued file for job {job.job_id} of {job.user} is missing: {source}")
        # The slot may sit on another filesystem than the queued area.
        shutil.move(str(source), str(self.outbox / self.slot_name))
        return running_job

    def from_running_to_finished(self, job: Job) -> Job:
        # The consumer empties the slot itself; nothing to do on disk.
        return job.to_finished()

    def something_running(self) -> bool:
        return not is_empty(self.outbox)
