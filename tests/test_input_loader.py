import importlib.util
import os
import tempfile
import unittest
from unittest.mock import patch

import pandas as pd

from instacheck.core.errors import InputError
from instacheck.operations.input_loader import load_records, parse_usernames, records_from_rows


class TestLoadRecords(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def write(self, name, content, encoding="utf-8"):
        path = self.path(name)
        with open(path, "w", encoding=encoding, newline="") as fh:
            fh.write(content)
        return path

    def test_csv_keeps_full_rows(self):
        path = self.write("accounts.csv", "Name,UserName,Followers\nAlice, alice ,10\nBob,,5\nCarol,carol\n", encoding="utf-8-sig")
        loaded = load_records(path)

        self.assertEqual([r.key for r in loaded.records], ["alice", "carol"])
        self.assertEqual(loaded.key_column, "UserName")
        self.assertFalse(loaded.key_column_defaulted)
        self.assertEqual(loaded.skipped_rows, 1)
        self.assertEqual(dict(loaded.records[0].payload), {"Name": "Alice", "UserName": " alice ", "Followers": "10"})
        # Missing trailing cells become empty strings
        self.assertEqual(loaded.records[1].payload["Followers"], "")

    def test_missing_key_column_defaults_to_first(self):
        path = self.write("handles.csv", "handle,notes\nalice,vip\nbob,\n")
        loaded = load_records(path)
        self.assertTrue(loaded.key_column_defaulted)
        self.assertEqual(loaded.key_column, "handle")
        self.assertEqual([r.key for r in loaded.records], ["alice", "bob"])

    def test_custom_key_column(self):
        path = self.write("handles.csv", "id,Handle\n1,alice\n2,bob\n")
        loaded = load_records(path, key_column="handle")
        self.assertEqual([r.key for r in loaded.records], ["alice", "bob"])

    def test_duplicate_and_blank_headers_stay_distinct(self):
        path = self.write("dupes.csv", "username,note,note,\nalice,a,b,c\n")
        loaded = load_records(path)
        self.assertEqual(loaded.headers, ["username", "note", "note_2", "column_4"])
        self.assertEqual(loaded.records[0].payload["note_2"], "b")

    def test_text_file_one_name_per_line(self):
        path = self.write("names.txt", "username\n# staff accounts\nalice\n\n bob \n")
        loaded = load_records(path)
        self.assertEqual([r.key for r in loaded.records], ["alice", "bob"])
        self.assertEqual(dict(loaded.records[1].payload), {"username": "bob"})

    def test_excel_input(self):
        path = self.path("accounts.xlsx")
        frame = pd.DataFrame({
            "Name": ["Alice", "Bob", "Carol"],
            "username": ["alice", None, "carol"],
            "Followers": [10, 20, 30],
        })
        frame.to_excel(path, index=False)

        loaded = load_records(path)
        self.assertEqual([r.key for r in loaded.records], ["alice", "carol"])
        self.assertEqual(loaded.headers, ["Name", "username", "Followers"])
        self.assertEqual(loaded.records[1].payload["Name"], "Carol")
        self.assertEqual(loaded.records[1].payload["Followers"], "30")

    def test_literal_nan_and_none_are_real_usernames(self):
        path = self.write("odd.csv", "username,note\nnan,a\nNone,b\nalice,c\n,d\n")
        loaded = load_records(path)
        self.assertEqual([r.key for r in loaded.records], ["nan", "None", "alice"])
        self.assertEqual(loaded.skipped_rows, 1)
        self.assertEqual(loaded.records[1].payload["note"], "b")

    def test_legacy_xls_goes_through_pandas(self):
        self.assertIsNotNone(importlib.util.find_spec("xlrd"))
        path = self.write("legacy.xls", "")
        frame = pd.DataFrame([["username", "city"], ["alice", "Prague"]])
        with patch("instacheck.operations.input_loader.pd.read_excel", return_value=frame) as read_excel:
            loaded = load_records(path)
        read_excel.assert_called_once()
        self.assertEqual(read_excel.call_args[0][0], path)
        self.assertEqual([dict(r.payload) for r in loaded.records], [{"username": "alice", "city": "Prague"}])

    def test_unusable_inputs(self):
        empty = self.write("empty.csv", "")
        only_blanks = self.write("blank.csv", "username,name\n,Alice\n  ,Bob\n")
        unsupported = self.write("accounts.pdf", "username\nalice\n")
        for path in (empty, only_blanks, unsupported, self.path("missing.csv")):
            with self.subTest(path=os.path.basename(path)):
                with self.assertRaises(InputError):
                    load_records(path)


class TestRecordsFromRows(unittest.TestCase):
    def test_header_only_rejected(self):
        with self.assertRaises(InputError):
            records_from_rows([["username"]])

    def test_input_error_is_value_error(self):
        with self.assertRaises(ValueError):
            records_from_rows([])


class TestParseUsernames(unittest.TestCase):
    def test_split_on_commas_and_whitespace(self):
        loaded = parse_usernames("alice, bob  carol,,")
        self.assertEqual([r.key for r in loaded.records], ["alice", "bob", "carol"])
        self.assertEqual(dict(loaded.records[0].payload), {"username": "alice"})

    def test_literal_nan_kept(self):
        loaded = parse_usernames("nan none")
        self.assertEqual([r.key for r in loaded.records], ["nan", "none"])

    def test_nothing_usable(self):
        self.assertIsNone(parse_usernames(" , "))


if __name__ == '__main__':
    unittest.main()
