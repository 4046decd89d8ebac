from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from .errors import InvalidTransitionError


class JobStatus(str, Enum):
    INBOX = "inbox"
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"


class Location(str, Enum):
    INBOX = "inbox"
    QUEUED = "queued"
    OUTBOX = "outbox"


@dataclass(frozen=True, slots=True)
class Job:
    """A job file owned by `user`. Equality ignores status."""

    user: str
    job_id: str
    status: JobStatus = field(compare=False)

    def _advance(self, expected: JobStatus, target: JobStatus) -> Job:
        if self.status is not expected:
            raise InvalidTransitionError(
                f"cannot move job {self.job_id} of {self.user} to {target.value}: "
                f"status is {self.status.value}, expected {expected.value}"
            )
        return replace(self, status=target)

    def to_queued(self) -> Job:
        return self._advance(JobStatus.INBOX, JobStatus.QUEUED)

    def to_running(self) -> Job:
        return self._advance(JobStatus.QUEUED, JobStatus.RUNNING)

    def to_finished(self) -> Job:
        return self._advance(JobStatus.RUNNING, JobStatus.FINISHED)
