import os
import tempfile
import unittest
from unittest.mock import patch

from instacheck import instacheck_cli
from instacheck.core.models import ProbeOutcome, RunSnapshot, RunStats


class FakeProbe:
    def __init__(self):
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        self.closed = True

    async def __call__(self, key):
        self.calls.append(key)
        if key.startswith("taken"):
            return ProbeOutcome.found()
        return ProbeOutcome.not_found()


class TestArgumentParser(unittest.TestCase):
    def test_defaults(self):
        args = instacheck_cli.create_argument_parser().parse_args(["accounts.xlsx"])
        self.assertEqual(args.input, "accounts.xlsx")
        self.assertEqual(args.service, "instagram")
        self.assertEqual(args.key_column, "username")
        self.assertEqual((args.concurrency, args.max_retries), (5, 10))
        self.assertIsNone(args.format)

    def test_input_is_required(self):
        with self.assertRaises(SystemExit):
            instacheck_cli.main([])


class TestMain(unittest.TestCase):
    def setUp(self):
        self.probe = FakeProbe()
        patcher = patch("instacheck.instacheck_cli.create_probe", return_value=self.probe)
        self.create_probe = patcher.start()
        self.addCleanup(patcher.stop)

    def test_show_services(self):
        self.assertEqual(instacheck_cli.main(["--show-services"]), 0)
        self.create_probe.assert_not_called()

    def test_inline_usernames_without_export(self):
        code = instacheck_cli.main(["--usernames", "taken1, free1", "--no-banner", "--no-export", "-c", "2"])
        self.assertEqual(code, 0)
        self.assertEqual(sorted(self.probe.calls), ["free1", "taken1"])
        self.assertTrue(self.probe.closed)
        self.assertEqual(self.create_probe.call_args[0][0], "instagram")

    def test_file_input_exports_found_accounts(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = os.path.join(tmp, "leads.csv")
            with open(source, "w", encoding="utf-8") as fh:
                fh.write("username,city\ntaken1,Prague\nfree1,Brno\n")
            out_dir = os.path.join(tmp, "out")

            code = instacheck_cli.main([source, "--no-banner", "--output-dir", out_dir, "--format", "csv"])

            self.assertEqual(code, 0)
            written = os.listdir(out_dir)
            self.assertEqual(len(written), 1)
            self.assertTrue(written[0].startswith("active_accounts_leads_"))
            with open(os.path.join(out_dir, written[0]), encoding="utf-8") as fh:
                self.assertEqual(fh.read().splitlines(), ["username,city", "taken1,Prague"])

    def test_bad_inputs_exit_with_error(self):
        cases = [
            ["--usernames", "alice", "--service", "myspace"],
            ["--usernames", "alice", "--concurrency", "0"],
            [os.path.join(tempfile.gettempdir(), "does-not-exist.csv")],
            ["--usernames", " , "],
        ]
        for argv in cases:
            with self.subTest(argv=argv):
                self.assertEqual(instacheck_cli.main(argv + ["--no-banner"]), 1)
        self.assertEqual(self.probe.calls, [])


class FakeHandle:
    total = 1

    def __init__(self, interrupt_on_snapshot=1):
        self.snapshots = 0
        self.cancels = 0
        self.interrupt_on_snapshot = interrupt_on_snapshot
        self.final = RunSnapshot(stats=RunStats(total=1, processed=1, available=1))

    def wait(self, timeout=None):
        return True

    def snapshot(self):
        self.snapshots += 1
        if self.snapshots == self.interrupt_on_snapshot:
            raise KeyboardInterrupt
        return self.final

    def cancel(self):
        self.cancels += 1
        return self.cancels == 1


class TestWatchRun(unittest.TestCase):
    def test_interrupt_outside_wait_requests_cancel(self):
        handle = FakeHandle()
        snapshot = instacheck_cli.watch_run(handle)
        self.assertIs(snapshot, handle.final)
        self.assertEqual(handle.cancels, 1)
        self.assertEqual(handle.snapshots, 2)

    def test_finished_run_returns_last_snapshot(self):
        handle = FakeHandle(interrupt_on_snapshot=0)
        self.assertIs(instacheck_cli.watch_run(handle), handle.final)
        self.assertEqual(handle.cancels, 0)


if __name__ == '__main__':
    unittest.main()
