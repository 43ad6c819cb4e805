"""
Unit tests for progress reporting.
"""

import threading
import unittest

from logsource.progress import ProgressListener, ProgressTracker


class RecordingListener(ProgressListener):

    def __init__(self):
        self.events = []

    def on_step(self, message):
        self.events.append(("step", message))

    def on_begin_step(self, message):
        self.events.append(("begin", message))

    def on_end_step(self, message):
        self.events.append(("end", message))

    def on_work_started(self, info):
        self.events.append(("started", info.total, info.units))

    def on_work_progress(self, info, amount):
        self.events.append(("progress", amount))

    def on_work_finished(self, info):
        self.events.append(("finished", info.completed))


class BrokenListener(ProgressListener):

    def on_step(self, message):
        raise RuntimeError("listener failure")


class TestProgressTracker(unittest.TestCase):
    """Test cases for ProgressTracker and WorkGuard."""

    def test_no_listeners(self):
        tracker = ProgressTracker()
        tracker.step("nothing listens")
        with tracker.doing_work(3, "files") as guard:
            guard.inc()
        self.assertEqual(guard.info.completed, 3)

    def test_events_in_order(self):
        tracker = ProgressTracker()
        listener = tracker.subscribe(RecordingListener())

        tracker.begin_step("Finding source code")
        tracker.end_step("Finding source code")
        tracker.step("Extracting")
        with tracker.doing_work(2, "files") as guard:
            guard.inc()
            guard.inc()

        self.assertEqual(listener.events, [
            ("begin", "Finding source code"),
            ("end", "Finding source code"),
            ("step", "Extracting"),
            ("started", 2, "files"),
            ("progress", 1),
            ("progress", 1),
            ("finished", 2),
        ])

    def test_close_completes_remaining_work(self):
        tracker = ProgressTracker()
        listener = tracker.subscribe(RecordingListener())

        guard = tracker.doing_work(5, "files")
        guard.inc(2)
        guard.close()
        guard.close()

        self.assertEqual(listener.events[-2:], [("progress", 3), ("finished", 5)])
        self.assertEqual(len([e for e in listener.events if e[0] == "finished"]), 1)

    def test_failing_listener_is_isolated(self):
        tracker = ProgressTracker()
        tracker.subscribe(BrokenListener())
        listener = tracker.subscribe(RecordingListener())

        tracker.step("still delivered")

        self.assertEqual(listener.events, [("step", "still delivered")])

    def test_concurrent_increments(self):
        tracker = ProgressTracker()
        guard = tracker.doing_work(400, "files")

        def work():
            for _ in range(100):
                guard.inc()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(guard.info.completed, 400)
        self.assertFalse(guard.info.is_in_progress())


if __name__ == '__main__':
    unittest.main()
