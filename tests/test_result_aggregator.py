import unittest

from instacheck.core.models import INFO, Outcome
from instacheck.core.result_aggregator import ResultAggregator


class TestResultAggregator(unittest.TestCase):
    def test_counts_and_found_set(self):
        agg = ResultAggregator(total=4)
        row = {"username": "alice", "followers": "10"}
        agg.record_terminal(Outcome.ACTIVE, "alice - Active", row)
        agg.record_terminal(Outcome.AVAILABLE, "bob - Available", {"username": "bob"})
        agg.record_terminal(Outcome.ERROR, "carol - Max retries exceeded", {"username": "carol"})
        agg.record_terminal(Outcome.CANCELLED, "Cancelled: dave")

        stats = agg.stats
        self.assertEqual(stats.total, 4)
        self.assertEqual(stats.processed, 3)
        self.assertEqual((stats.active, stats.available, stats.error, stats.cancelled), (1, 1, 1, 1))
        self.assertEqual(stats.settled, 4)
        self.assertEqual(agg.found, [row])

    def test_logs_are_newest_first_and_capped(self):
        agg = ResultAggregator(total=5, results_cap=2, info_cap=3)
        for i in range(5):
            agg.record_terminal(Outcome.AVAILABLE, f"user{i} - Available")
            agg.record_info(f"note {i}")

        snap = agg.snapshot()
        self.assertEqual([e.message for e in snap.results], ["user4 - Available", "user3 - Available"])
        self.assertEqual([e.message for e in snap.info], ["note 4", "note 3", "note 2"])
        self.assertTrue(all(e.status == INFO for e in snap.info))
        # Counters are never trimmed with the log
        self.assertEqual(snap.stats.available, 5)

    def test_snapshot_is_detached(self):
        agg = ResultAggregator(total=2)
        snap = agg.snapshot()
        agg.record_info("later")
        agg.record_terminal(Outcome.ACTIVE, "alice - Active", {"username": "alice"})
        self.assertEqual(snap.info, ())
        self.assertEqual(snap.found, ())
        self.assertEqual(snap.stats.processed, 0)

    def test_reset_clears_everything(self):
        agg = ResultAggregator(total=1)
        agg.record_terminal(Outcome.ACTIVE, "alice - Active", {"username": "alice"})
        agg.record_info("note")
        agg.reset(3)
        snap = agg.snapshot()
        self.assertEqual(snap.stats.total, 3)
        self.assertEqual(snap.stats.processed, 0)
        self.assertEqual((snap.results, snap.info, snap.found), ((), (), ()))

    def test_listener_errors_are_ignored(self):
        agg = ResultAggregator(total=1)
        seen = []

        def broken(_snapshot):
            raise RuntimeError("listener failed")

        agg.add_listener(broken)
        agg.add_listener(seen.append)
        agg.record_terminal(Outcome.AVAILABLE, "bob - Available")

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].stats.available, 1)

        agg.remove_listener(seen.append)
        agg.record_info("no longer observed")
        self.assertEqual(len(seen), 1)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            ResultAggregator(results_cap=0)
        with self.assertRaises(ValueError):
            ResultAggregator(total=-1)


if __name__ == '__main__':
    unittest.main()
