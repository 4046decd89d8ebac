from __future__ import annotations

from dataclasses import dataclass

from .errors import ConsistencyError


@dataclass(slots=True)
class AccountingEntry:
    name: str
    scheduled: int = 0
    queued: int = 0


class Accounting:
    """
    Least-served-first ranking of users.

    Entries stay sorted ascending by lifetime `scheduled` count. Python's sort
    is stable, so users with equal counts keep first-seen order.
    """

    def __init__(self) -> None:
        self._entries: list[AccountingEntry] = []

    def _find(self, user: str) -> AccountingEntry | None:
        for entry in self._entries:
            if entry.name == user:
                return entry
        return None

    def _resort(self) -> None:
        self._entries.sort(key=lambda entry: entry.scheduled)

    def record_queued(self, user: str) -> None:
        entry = self._find(user)
        if entry is None:
            self._entries.append(AccountingEntry(name=user, scheduled=0, queued=1))
        else:
            entry.queued += 1
        self._resort()

    def record_scheduled(self, user: str) -> None:
        entry = self._find(user)
        if entry is None:
            raise ConsistencyError(f"user {user} was scheduled without ever being queued")
        if entry.queued < 1:
            raise ConsistencyError(f"user {user} was scheduled with no pending jobs")
        entry.scheduled += 1
        entry.queued -= 1
        self._resort()

    def record_lost(self, user: str) -> None:
        """Forget one pending job of `user` that vanished before it could run."""
        entry = self._find(user)
        if entry is None or entry.queued < 1:
            raise ConsistencyError(f"user {user} lost a job it never had pending")
        entry.queued -= 1

    def next_user(self) -> str | None:
        for entry in self._entries:
            if entry.queued > 0:
                return entry.name
        return None

    def clear_pending(self) -> None:
        for entry in self._entries:
            entry.queued = 0

    def entries(self) -> list[AccountingEntry]:
        return [AccountingEntry(entry.name, entry.scheduled, entry.queued) for entry in self._entries]
