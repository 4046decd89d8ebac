from pathlib import Path
from tempfile import TemporaryDirectory
import logging
import unittest

from funnel.backend import FilesystemBackend
from funnel.errors import InvalidTransitionError, JobMissingError
from funnel.models import Job, JobStatus, Location
from funnel.sync import SyncStatus


class FakeOracle:
    def __init__(self) -> None:
        self.syncing: set[str] = set()

    def status(self, path: Path) -> SyncStatus:
        return SyncStatus.SYNCING if path.name in self.syncing else SyncStatus.SYNCED


def null_logger() -> logging.Logger:
    logger = logging.getLogger("test_funnel")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


class FilesystemBackendTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = TemporaryDirectory()
        self.root = Path(self._temp_dir.name)
        self.oracle = FakeOracle()
        self.backend = FilesystemBackend(
            inbox=self.root / "inbox",
            queued=self.root / "queued",
            outbox=self.root / "outbox",
            oracle=self.oracle,
            logger=null_logger(),
        )

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def drop(self, user: str, name: str, area: str = "inbox") -> Path:
        user_dir = self.root / area / user
        user_dir.mkdir(parents=True, exist_ok=True)
        path = user_dir / name
        path.write_bytes(b"sequence")
        return path

    def test_initialize_is_idempotent(self) -> None:
        self.assertEqual(self.backend.initialize(), {Location.INBOX, Location.QUEUED, Location.OUTBOX})
        (self.root / "inbox" / "alice").mkdir()
        self.assertEqual(self.backend.initialize(), set())
        self.assertEqual(self.backend.initialize(), set())
        self.assertTrue((self.root / "inbox" / "alice").is_dir())

    def test_initialize_recreates_missing_location(self) -> None:
        self.backend.initialize()
        (self.root / "queued").rmdir()
        self.assertEqual(self.backend.initialize(), {Location.QUEUED})

    def test_check_inbox_skips_files_still_syncing(self) -> None:
        self.backend.initialize()
        self.drop("alice", "a.seq")
        self.drop("bob", "b.seq")
        self.oracle.syncing.add("b.seq")

        jobs = self.backend.check_inbox()
        self.assertEqual(jobs, [Job("alice", "a.seq", JobStatus.INBOX)])
        self.assertTrue(all(job.status is JobStatus.INBOX for job in jobs))

        self.oracle.syncing.clear()
        self.assertEqual(
            self.backend.check_inbox(),
            [Job("alice", "a.seq", JobStatus.INBOX), Job("bob", "b.seq", JobStatus.INBOX)],
        )
        # discovery leaves storage untouched
        self.assertTrue((self.root / "inbox" / "alice" / "a.seq").exists())

    def test_check_queued_recovers_leftovers(self) -> None:
        self.backend.initialize()
        self.drop("alice", "a.seq", area="queued")
        jobs = self.backend.check_queued()
        self.assertEqual(jobs, [Job("alice", "a.seq", JobStatus.QUEUED)])
        self.assertEqual(jobs[0].status, JobStatus.QUEUED)

    def test_job_moves_through_locations(self) -> None:
        self.backend.initialize()
        self.drop("alice", "a.seq")
        [job] = self.backend.check_inbox()

        queued = self.backend.from_inbox_to_queued(job)
        self.assertEqual(queued.status, JobStatus.QUEUED)
        self.assertFalse((self.root / "inbox" / "alice" / "a.seq").exists())
        self.assertTrue((self.root / "queued" / "alice" / "a.seq").exists())
        self.assertFalse(self.backend.something_running())

        running = self.backend.from_queued_to_running(queued)
        self.assertEqual(running.status, JobStatus.RUNNING)
        self.assertFalse((self.root / "queued" / "alice" / "a.seq").exists())
        self.assertEqual((self.root / "outbox" / "external.seq").read_bytes(), b"sequence")
        self.assertTrue(self.backend.something_running())

        finished = self.backend.from_running_to_finished(running)
        self.assertEqual(finished.status, JobStatus.FINISHED)
        self.assertTrue((self.root / "outbox" / "external.seq").exists())

    def test_transition_from_wrong_state_touches_nothing(self) -> None:
        self.backend.initialize()
        path = self.drop("alice", "a.seq")
        with self.assertRaises(InvalidTransitionError):
            self.backend.from_queued_to_running(Job("alice", "a.seq", JobStatus.INBOX))
        self.assertTrue(path.exists())
        self.assertFalse(self.backend.something_running())

    def test_failed_admission_leaves_file_for_rediscovery(self) -> None:
        self.backend.initialize()
        with self.assertRaises(OSError):
            self.backend.from_inbox_to_queued(Job("alice", "gone.seq", JobStatus.INBOX))

    def test_dispatch_of_vanished_queued_file_reports_missing_job(self) -> None:
        self.backend.initialize()
        with self.assertRaises(JobMissingError):
            self.backend.from_queued_to_running(Job("alice", "gone.seq", JobStatus.QUEUED))
        self.assertFalse(self.backend.something_running())

    def test_describe_lists_locations(self) -> None:
        described = self.backend.describe()
        self.assertEqual(described["outbox"], str(self.root / "outbox"))
        self.assertEqual(set(described), {"inbox", "queued", "outbox"})


if __name__ == "__main__":
    unittest.main()
