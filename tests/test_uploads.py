import os
import tempfile
import threading
import unittest
from pathlib import Path

from fake_s3 import FakeS3Client, client_error, factory_for
from objectstore_browser.errors import UploadError
from objectstore_browser.models import ConnectionParams, Session
from objectstore_browser.services import ObjectStoreService
from objectstore_browser.uploads import UploadTracker, progress_percent


PARAMS = ConnectionParams(endpoint_url="http://127.0.0.1:9000", access_key="minio", secret_key="secret")


class ScriptedUploadService:
    """Replays byte counts per file and records the tracker's view after each one."""

    def __init__(self, scripts, failures=(), barrier=None):
        self.scripts = scripts
        self.failures = set(failures)
        self.barrier = barrier
        self.tracker = None
        self.observed = {name: [] for name in scripts}
        self.configs = []

    def upload_file(self, session, *, bucket_name, key, source_path, progress_callback=None, transfer_config=None):
        name = os.path.basename(source_path)
        self.configs.append(transfer_config)
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        for transferred in self.scripts[name]:
            progress_callback(transferred)
            task = next(task for task in self.tracker.snapshot() if task.target_key == key)
            self.observed[name].append(task.progress_percent)
        if name in self.failures:
            raise UploadError(f"Failed to upload \"{name}\"", file_name=name, target_key=key)


class ProgressPercentTests(unittest.TestCase):
    def test_unknown_or_empty_total_is_zero(self):
        self.assertEqual(0, progress_percent(10, None))
        self.assertEqual(0, progress_percent(10, 0))

    def test_percentage_is_clamped(self):
        self.assertEqual(50, progress_percent(5, 10))
        self.assertEqual(100, progress_percent(15, 10))
        self.assertEqual(0, progress_percent(-5, 10))


class UploadTrackerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.session = Session(params=PARAMS, client=None)

    def _file(self, name, size):
        path = self.tmp / name
        path.write_bytes(b"x" * size)
        return str(path)

    def test_concurrent_uploads_settle_independently(self):
        big = self._file("A.bin", 10 * 1024 * 1024)
        small = self._file("B.txt", 1024)
        barrier = threading.Barrier(2)
        service = ScriptedUploadService(
            {
                "A.bin": [1024 * 1024, 5 * 1024 * 1024],
                "B.txt": [256, 512, 1024],
            },
            failures={"A.bin"},
            barrier=barrier,
        )
        tracker = UploadTracker(service)
        service.tracker = tracker
        results = []

        started = tracker.start(
            self.session,
            bucket_name="bucket",
            prefix="docs/",
            paths=[big, small],
            on_settled=results.append,
        )
        tracker.join(timeout=10)

        self.assertEqual(["docs/A.bin", "docs/B.txt"], [task.target_key for task in started])
        self.assertEqual(2, len({task.id for task in started}))
        self.assertFalse(barrier.broken)
        by_name = {result.task.file_name: result for result in results}
        self.assertTrue(by_name["A.bin"].task.terminal)
        self.assertTrue(by_name["B.txt"].task.terminal)
        self.assertIsInstance(by_name["A.bin"].error, UploadError)
        self.assertIsNone(by_name["B.txt"].error)
        self.assertEqual(100, by_name["B.txt"].task.progress_percent)
        self.assertEqual([25, 50, 100], service.observed["B.txt"])
        self.assertEqual([10, 50], service.observed["A.bin"])
        self.assertEqual([], tracker.snapshot())

    def test_progress_never_decreases(self):
        path = self._file("C.txt", 100)
        service = ScriptedUploadService({"C.txt": [40, 20, 70, 150]})
        tracker = UploadTracker(service)
        service.tracker = tracker

        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[path])
        tracker.join(timeout=10)

        self.assertEqual([40, 40, 70, 100], service.observed["C.txt"])

    def test_empty_file_reports_zero_until_done(self):
        path = self._file("empty.txt", 0)
        service = ScriptedUploadService({"empty.txt": [0]})
        tracker = UploadTracker(service)
        service.tracker = tracker
        results = []

        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[path], on_settled=results.append)
        tracker.join(timeout=10)

        self.assertEqual([0], service.observed["empty.txt"])
        self.assertEqual(100, results[0].task.progress_percent)

    def test_tasks_are_tracked_while_in_flight(self):
        path = self._file("slow.txt", 10)
        release = threading.Event()
        entered = threading.Event()

        class BlockingService:
            def upload_file(self, session, **kwargs):
                entered.set()
                release.wait(timeout=5)

        tracker = UploadTracker(BlockingService())
        started = tracker.start(self.session, bucket_name="bucket", prefix="p/", paths=[path])
        entered.wait(timeout=5)

        snapshot = tracker.snapshot()
        self.assertEqual([started[0].id], [task.id for task in snapshot])
        self.assertFalse(snapshot[0].terminal)
        self.assertEqual(10, snapshot[0].total_bytes)
        self.assertEqual(1, tracker.active_count)

        release.set()
        tracker.join(timeout=10)
        self.assertEqual(0, tracker.active_count)

    def test_finished_threads_are_forgotten_on_next_start(self):
        service = ScriptedUploadService({"one.txt": [3], "two.txt": [3]})
        tracker = UploadTracker(service)
        service.tracker = tracker

        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[self._file("one.txt", 3)])
        first = tracker._threads[0]
        first.join(timeout=10)
        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[self._file("two.txt", 3)])

        self.assertNotIn(first, tracker._threads)
        self.assertEqual(1, len(tracker._threads))
        tracker.join(timeout=10)

    def test_new_transfer_config_applies_to_later_uploads(self):
        service = ScriptedUploadService({"one.txt": [3], "two.txt": [3]})
        tracker = UploadTracker(service, transfer_config="initial")
        service.tracker = tracker

        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[self._file("one.txt", 3)])
        tracker.join(timeout=10)
        tracker.transfer_config = "updated"
        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[self._file("two.txt", 3)])
        tracker.join(timeout=10)

        self.assertEqual(["initial", "updated"], service.configs)

    def test_unexpected_errors_become_upload_errors(self):
        path = self._file("odd.txt", 10)

        class BrokenService:
            def upload_file(self, session, **kwargs):
                raise RuntimeError("socket closed")

        tracker = UploadTracker(BrokenService())
        results = []
        tracker.start(self.session, bucket_name="bucket", prefix="", paths=[path], on_settled=results.append)
        tracker.join(timeout=10)

        self.assertIsInstance(results[0].error, UploadError)
        self.assertEqual("odd.txt", results[0].error.file_name)

    def test_uploads_through_store_service(self):
        client = FakeS3Client(buckets=["bucket"])
        client.upload_errors["bad.txt"] = client_error("AccessDenied", "Denied", "PutObject")
        service = ObjectStoreService(client_factory=factory_for(client))
        session = service.connect(PARAMS)
        tracker = UploadTracker(service)
        results = []

        tracker.start(
            session,
            bucket_name="bucket",
            prefix="in/",
            paths=[self._file("good.txt", 9), self._file("bad.txt", 9)],
            on_settled=results.append,
        )
        tracker.join(timeout=10)

        outcomes = {result.task.file_name: result.succeeded for result in results}
        self.assertEqual({"good.txt": True, "bad.txt": False}, outcomes)
        self.assertEqual(b"x" * 9, client.objects["bucket"]["in/good.txt"])
        self.assertNotIn("in/bad.txt", client.objects["bucket"])


if __name__ == "__main__":
    unittest.main()
