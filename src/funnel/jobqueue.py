from __future__ import annotations

from .models import Job, JobStatus


class Queue:
    """In-memory mirror of the jobs the backend holds as queued or running."""

    def __init__(self) -> None:
        self.jobs: list[Job] = []

    def __len__(self) -> int:
        return len(self.jobs)

    def __contains__(self, job: Job) -> bool:
        return job in self.jobs

    def push(self, job: Job) -> bool:
        if job in self.jobs:
            return False
        self.jobs.append(job)
        return True

    def push_front(self, job: Job) -> bool:
        if job in self.jobs:
            return False
        self.jobs.insert(0, job)
        return True

    def dump(self) -> None:
        self.jobs = []

    def remove(self, job: Job) -> bool:
        try:
            self.jobs.remove(job)
        except ValueError:
            return False
        return True

    def take_by_user(self, user: str) -> Job | None:
        for idx, job in enumerate(self.jobs):
            if job.status is JobStatus.QUEUED and job.user == user:
                return self.jobs.pop(idx)
        return None

    def running(self) -> list[Job]:
        return [job for job in self.jobs if job.status is JobStatus.RUNNING]

    def queued_count(self, user: str) -> int:
        return sum(1 for job in self.jobs if job.status is JobStatus.QUEUED and job.user == user)
