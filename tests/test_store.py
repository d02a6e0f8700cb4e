import json
import os
import sqlite3
import tempfile
import unittest

from cpauth.store import (
    CorruptRecordError,
    IdentityDirectory,
    JsonDirectory,
    MemoryDirectory,
    PendingAttempt,
    Registration,
    SqliteDirectory,
    StorageError,
    open_directory,
)


class DirectoryContract:
    """Behaviour every identity directory must share."""

    def make_directory(self) -> IdentityDirectory:
        raise NotImplementedError

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.directory = self.make_directory()
        self.addCleanup(self.directory.close)

    def test_registration_is_first_write_wins(self) -> None:
        self.assertFalse(self.directory.is_registered("abc"))
        self.assertTrue(self.directory.put_registration("abc", 0x1234, 0xBEEF))
        self.assertFalse(self.directory.put_registration("abc", 1, 2))
        self.assertTrue(self.directory.is_registered("abc"))
        self.assertEqual(self.directory.get_registration("abc"), Registration("abc", 0x1234, 0xBEEF))

    def test_unknown_registration(self) -> None:
        self.assertIsNone(self.directory.get_registration("missing"))

    def test_pending_is_overwritten_and_taken_once(self) -> None:
        self.directory.upsert_pending("abc", 1, 2, 3)
        self.directory.upsert_pending("abc", 4, 5, 6)
        self.assertEqual(self.directory.take_pending("abc"), PendingAttempt("abc", 4, 5, 6))
        self.assertIsNone(self.directory.take_pending("abc"))

    def test_pending_is_per_identity(self) -> None:
        self.directory.upsert_pending("abc", 1, 2, 3)
        self.directory.upsert_pending("def", 7, 8, 9)
        self.assertEqual(self.directory.take_pending("def"), PendingAttempt("def", 7, 8, 9))
        self.assertEqual(self.directory.take_pending("abc"), PendingAttempt("abc", 1, 2, 3))

    def test_large_integers_survive(self) -> None:
        big = 2**2047 + 12345
        self.directory.put_registration("abc", big, big - 1)
        registration = self.directory.get_registration("abc")
        self.assertEqual((registration.y1, registration.y2), (big, big - 1))


class TestMemoryDirectory(DirectoryContract, unittest.TestCase):
    def make_directory(self) -> IdentityDirectory:
        return MemoryDirectory()


class TestJsonDirectory(DirectoryContract, unittest.TestCase):
    def make_directory(self) -> IdentityDirectory:
        self.path = os.path.join(self.tmp.name, "directory.json")
        return JsonDirectory(self.path)

    def test_survives_reopen(self) -> None:
        self.directory.put_registration("abc", 10, 11)
        self.directory.upsert_pending("abc", 1, 2, 3)
        reopened = JsonDirectory(self.path)
        self.assertEqual(reopened.get_registration("abc"), Registration("abc", 10, 11))
        self.assertEqual(reopened.take_pending("abc"), PendingAttempt("abc", 1, 2, 3))
        self.assertIsNone(self.directory.take_pending("abc"))

    def test_unreadable_file(self) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            handle.write("{not json")
        with self.assertRaises(StorageError):
            self.directory.is_registered("abc")

    def test_corrupt_value(self) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump({"registrations": {"abc": {"y1": "zz", "y2": "1"}}, "pending": {}}, handle)
        with self.assertRaises(CorruptRecordError):
            self.directory.get_registration("abc")

    def test_file_without_json_object(self) -> None:
        for document in ([], "directory", 42, {"registrations": [], "pending": {}}):
            with open(self.path, "w", encoding="utf-8") as handle:
                json.dump(document, handle)
            with self.assertRaises(StorageError, msg=repr(document)):
                self.directory.is_registered("abc")
            with self.assertRaises(StorageError, msg=repr(document)):
                self.directory.take_pending("abc")

    def test_record_that_is_not_an_object(self) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump({"registrations": {"abc": "10"}, "pending": {"abc": ["1", "2", "3"]}}, handle)
        with self.assertRaises(CorruptRecordError):
            self.directory.get_registration("abc")
        with self.assertRaises(CorruptRecordError):
            self.directory.take_pending("abc")


class TestSqliteDirectory(DirectoryContract, unittest.TestCase):
    def make_directory(self) -> IdentityDirectory:
        self.path = os.path.join(self.tmp.name, "directory.db")
        return SqliteDirectory(self.path)

    def test_survives_reopen(self) -> None:
        self.directory.put_registration("abc", 10, 11)
        reopened = SqliteDirectory(self.path)
        self.addCleanup(reopened.close)
        self.assertEqual(reopened.get_registration("abc"), Registration("abc", 10, 11))

    def test_corrupt_value(self) -> None:
        conn = sqlite3.connect(self.path)
        with conn:
            conn.execute("INSERT INTO pending_attempts (auth_id, r1, r2, c) VALUES ('abc', '1', 'xyz', '3')")
        conn.close()
        with self.assertRaises(CorruptRecordError):
            self.directory.take_pending("abc")

    def test_unusable_path(self) -> None:
        with self.assertRaises(StorageError):
            SqliteDirectory(os.path.join(self.tmp.name, "missing", "directory.db"))


class TestOpenDirectory(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_schemes(self) -> None:
        self.assertIsInstance(open_directory("memory:"), MemoryDirectory)
        json_path = os.path.join(self.tmp.name, "a.json")
        self.assertIsInstance(open_directory(f"json:{json_path}"), JsonDirectory)
        sqlite_directory = open_directory(f"sqlite:{os.path.join(self.tmp.name, 'a.db')}")
        self.addCleanup(sqlite_directory.close)
        self.assertIsInstance(sqlite_directory, SqliteDirectory)

    def test_bare_path_is_json(self) -> None:
        path = os.path.join(self.tmp.name, "users.json")
        directory = open_directory(path)
        self.assertIsInstance(directory, JsonDirectory)
        self.assertTrue(os.path.exists(path))


if __name__ == "__main__":
    unittest.main()
