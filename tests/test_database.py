"""Tests for the document store adapters."""

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from bson.objectid import ObjectId
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from database import MemoryStore, MongoCollection, MongoStore, create_store, to_str_id
from errors import StorageError, UniqueViolation


class TestMemoryCollection(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()

    def test_unique_participant_name(self):
        self.store.participants.insert({"name": "ana", "lastStatus": 1})
        with self.assertRaises(UniqueViolation):
            self.store.participants.insert({"name": "ana", "lastStatus": 2})
        self.assertEqual(len(self.store.participants.find_many()), 1)

    def test_messages_allow_duplicates(self):
        doc = {"from": "ana", "to": "Todos", "text": "hi"}
        self.store.messages.insert(doc)
        self.store.messages.insert(doc)
        self.assertEqual(len(self.store.messages.find_many()), 2)

    def test_or_filter_and_order(self):
        for i, (sender, to) in enumerate([("a", "b"), ("c", "d"), ("b", "a"), ("c", "Todos")]):
            self.store.messages.insert({"from": sender, "to": to, "n": i})
        found = self.store.messages.find_many({"$or": [{"from": "a"}, {"to": "a"}, {"to": "Todos"}]})
        self.assertEqual([d["n"] for d in found], [0, 2, 3])

    def test_update_and_delete(self):
        self.store.participants.insert({"name": "ana", "lastStatus": 1})
        self.assertTrue(self.store.participants.update_one({"name": "ana"}, {"$set": {"lastStatus": 5}}))
        self.assertFalse(self.store.participants.update_one({"name": "bo"}, {"$set": {"lastStatus": 5}}))
        self.assertEqual(self.store.participants.find_one({"name": "ana"})["lastStatus"], 5)

        self.assertFalse(self.store.participants.delete_one({"name": "ana", "lastStatus": 1}))
        self.assertTrue(self.store.participants.delete_one({"name": "ana", "lastStatus": 5}))
        self.assertIsNone(self.store.participants.find_one({"name": "ana"}))

    def test_unsupported_update_operator(self):
        with self.assertRaises(StorageError):
            self.store.participants.update_one({}, {"$inc": {"lastStatus": 1}})

    def test_returned_documents_are_copies(self):
        self.store.participants.insert({"name": "ana", "lastStatus": 1})
        doc = self.store.participants.find_one({"name": "ana"})
        doc["lastStatus"] = 99
        self.assertEqual(self.store.participants.find_one({"name": "ana"})["lastStatus"], 1)


class TestMongoCollection(unittest.TestCase):

    def setUp(self):
        self.raw = MagicMock()
        self.collection = MongoCollection(self.raw)

    def test_duplicate_key_becomes_unique_violation(self):
        self.raw.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        with self.assertRaises(UniqueViolation):
            self.collection.insert({"name": "ana"})

    def test_other_errors_become_storage_errors(self):
        self.raw.find_one.side_effect = ServerSelectionTimeoutError("no servers")
        with self.assertRaises(StorageError) as ctx:
            self.collection.find_one({"name": "ana"})
        self.assertNotIsInstance(ctx.exception, UniqueViolation)

    def test_update_and_delete_report_matches(self):
        self.raw.update_one.return_value.matched_count = 1
        self.raw.delete_one.return_value.deleted_count = 0
        self.assertTrue(self.collection.update_one({"name": "ana"}, {"$set": {"lastStatus": 1}}))
        self.assertFalse(self.collection.delete_one({"name": "ana"}))

    def test_find_many_sorts_by_insertion(self):
        self.raw.find.return_value.sort.return_value = iter([{"n": 1}])
        self.assertEqual(self.collection.find_many(), [{"n": 1}])
        self.raw.find.assert_called_once_with({})


class TestMongoStore(unittest.TestCase):

    def test_unique_index_on_participant_name(self):
        client = MagicMock()
        store = MongoStore("mongodb://unused", "chatroom", client=client)
        store.ensure_indexes()
        client["chatroom"]["participants"].create_index.assert_called_once_with("name", unique=True)

    def test_client_returns_aware_datetimes(self):
        with patch("database.MongoClient") as client_cls:
            MongoStore("mongodb://db:27017", "chatroom")
        client_cls.assert_called_once_with("mongodb://db:27017", tz_aware=True)

    def test_create_store_memory(self):
        self.assertIsInstance(create_store("memory://", "chatroom"), MemoryStore)


class TestToStrId(unittest.TestCase):

    def test_serialises_id_and_datetimes(self):
        oid = ObjectId()
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        doc = to_str_id({"_id": oid, "createdAt": when, "text": "hi"})
        self.assertEqual(doc, {"id": str(oid), "createdAt": when.isoformat(), "text": "hi"})

    def test_empty(self):
        self.assertIsNone(to_str_id(None))


if __name__ == "__main__":
    unittest.main()
