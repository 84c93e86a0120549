import os
import json
import tempfile
import unittest
from unittest import mock

from memoria import (
    Vault, VaultSummary, VaultFull, DuplicateKey, ResourceNotFound, InvalidInput, IoFailure,
    CapacityUnit, Kilobytes, Megabytes, Gigabytes, TextMessage, SensorReading, SystemLogBatch, parse_record,
    save, load, load_or_create, delete_vault_file, load_config, open_vault, close_vault,
)
from memoria.capacity import capacity_from_dict
from memoria.records import record_from_dict, record_to_dict


class TestCapacity(unittest.TestCase):

    def test_byte_sizes(self):
        """Each unit scales its count by a power of 1024."""
        for n in (0, 1, 7, 50):
            self.assertEqual(Kilobytes(n).byte_size(), n * 1024)
            self.assertEqual(Megabytes(n).byte_size(), n * 1024 * 1024)
            self.assertEqual(Gigabytes(n).byte_size(), n * 1024 * 1024 * 1024)

    def test_units_are_distinct_values(self):
        self.assertEqual(Kilobytes(1), Kilobytes(1))
        self.assertNotEqual(Kilobytes(1), Megabytes(1))

    def test_rejects_bad_counts(self):
        for bad in (-1, 1.5, "3", True):
            with self.assertRaises(InvalidInput):
                Gigabytes(bad)

    def test_only_concrete_units(self):
        """The base class is not a usable capacity, so every vault can be saved and reloaded."""
        with self.assertRaises(InvalidInput):
            CapacityUnit(10)
        with self.assertRaises(InvalidInput):
            Vault("x", 10)

    def test_dict_form(self):
        self.assertEqual(Megabytes(3).to_dict(), {"unit": "MB", "count": 3})
        self.assertEqual(capacity_from_dict({"unit": "GB", "count": 2}), Gigabytes(2))
        with self.assertRaises(InvalidInput):
            capacity_from_dict({"unit": "TB", "count": 2})


class TestRecords(unittest.TestCase):

    def test_byte_sizes(self):
        self.assertEqual(TextMessage("abc").byte_size(), 3)
        self.assertEqual(TextMessage("héllo").byte_size(), 6)
        self.assertEqual(SensorReading(0.0).byte_size(), 8)
        self.assertEqual(SensorReading(-1e300).byte_size(), 8)
        self.assertEqual(SystemLogBatch(["a", "bb"]).byte_size(), 3)
        self.assertEqual(SystemLogBatch([]).byte_size(), 0)

    def test_log_batch_entries_are_immutable_and_ordered(self):
        batch = SystemLogBatch(["boot", "ready"])
        self.assertEqual(batch.entries, ("boot", "ready"))
        self.assertEqual(batch, SystemLogBatch(("boot", "ready")))
        self.assertNotEqual(batch, SystemLogBatch(["ready", "boot"]))

    def test_rejects_bad_payloads(self):
        with self.assertRaises(InvalidInput):
            TextMessage(5)
        with self.assertRaises(InvalidInput):
            SensorReading("hot")
        with self.assertRaises(InvalidInput):
            SystemLogBatch("not a list")
        with self.assertRaises(InvalidInput):
            SystemLogBatch(["ok", 3])
        with self.assertRaises(InvalidInput):
            SystemLogBatch(5)
        with self.assertRaises(InvalidInput):
            TextMessage("\ud800")
        with self.assertRaises(InvalidInput):
            SystemLogBatch(["ok", "\udfff"])
        with self.assertRaises(InvalidInput):
            SensorReading(10 ** 400)

    def test_sensor_reading_widens_ints(self):
        reading = SensorReading(21)
        self.assertIsInstance(reading.value, float)
        self.assertEqual(reading, SensorReading(21.0))

    def test_dict_form(self):
        self.assertEqual(record_to_dict(SystemLogBatch(["a"])), {"type": "SystemLogBatch", "payload": ["a"]})
        self.assertEqual(record_from_dict({"type": "SensorReading", "payload": 1.5}), SensorReading(1.5))
        with self.assertRaises(InvalidInput):
            record_from_dict({"type": "Photo", "payload": "x"})

    def test_parse_record(self):
        self.assertEqual(parse_record("TEXT", "Hello"), TextMessage("Hello"))
        self.assertEqual(parse_record("sensor", " 21.5 "), SensorReading(21.5))
        self.assertEqual(parse_record("log", "boot, ready ,done"), SystemLogBatch(["boot", "ready", "done"]))

    def test_parse_record_errors(self):
        with self.assertRaises(InvalidInput) as ctx:
            parse_record("sensor", "warm")
        self.assertEqual(ctx.exception.message, "Invalid number")
        with self.assertRaises(InvalidInput) as ctx:
            parse_record("photo", "x")
        self.assertEqual(ctx.exception.message, "Invalid type")


class TestVault(unittest.TestCase):

    def setUp(self):
        self.vault = Vault("Test Vault", Kilobytes(1))

    def test_new_vault_is_empty(self):
        self.assertEqual(self.vault.current_usage(), 0)
        self.assertIsNone(self.vault.get("anything"))
        self.assertEqual(len(self.vault), 0)
        self.assertEqual(self.vault.list_keys(), [])

    def test_add_and_get(self):
        """Insert then lookup returns the record and grows usage by its size."""
        record = TextMessage("Hello")
        self.vault.add("greeting", record)
        self.assertEqual(self.vault.get("greeting"), record)
        self.assertEqual(self.vault.current_usage(), record.byte_size())
        self.assertIn("greeting", self.vault)

    def test_capacity_is_inclusive(self):
        self.vault.add("exact", TextMessage("x" * 1024))
        self.assertEqual(self.vault.current_usage(), 1024)

    def test_capacity_exceeded_by_one(self):
        with self.assertRaises(VaultFull):
            self.vault.add("too_big", TextMessage("x" * 1025))
        self.assertEqual(self.vault.current_usage(), 0)
        self.assertNotIn("too_big", self.vault)

    def test_vault_full_reports_sizes(self):
        with self.assertRaises(VaultFull) as ctx:
            self.vault.add("big", TextMessage("x" * 2000))
        err = ctx.exception
        self.assertEqual((err.capacity, err.current, err.new_size), (1024, 0, 2000))
        self.assertEqual(len(self.vault), 0)

    def test_capacity_checked_before_duplicate(self):
        self.vault.add("k", TextMessage("x" * 1000))
        with self.assertRaises(VaultFull):
            self.vault.add("k", TextMessage("y" * 100))
        self.assertEqual(self.vault.get("k"), TextMessage("x" * 1000))

    def test_duplicate_key(self):
        first = SensorReading(1.0)
        self.vault.add("temp", first)
        with self.assertRaises(DuplicateKey) as ctx:
            self.vault.add("temp", SensorReading(2.0))
        self.assertEqual(ctx.exception.key, "temp")
        self.assertEqual(self.vault.get("temp"), first)
        self.assertEqual(self.vault.current_usage(), 8)

    def test_add_rejects_non_records(self):
        with self.assertRaises(InvalidInput):
            self.vault.add("raw", "just a string")
        self.assertEqual(len(self.vault), 0)

    def test_remove(self):
        record = SystemLogBatch(["a", "bb"])
        self.vault.add("logs", record)
        removed = self.vault.remove("logs")
        self.assertEqual(removed, record)
        self.assertIsNone(self.vault.get("logs"))
        self.assertEqual(self.vault.current_usage(), 0)

    def test_remove_missing(self):
        with self.assertRaises(ResourceNotFound) as ctx:
            self.vault.remove("ghost")
        self.assertEqual(ctx.exception.key, "ghost")

    def test_summary(self):
        vault = Vault("Global Vault", Gigabytes(50))
        vault.add("greeting", TextMessage("Hello"))
        self.assertEqual(vault.summary(), VaultSummary(1, 0, 0))
        vault.add("temp", SensorReading(20.5))
        vault.add("boot", SystemLogBatch(["ok"]))
        vault.add("hum", SensorReading(0.4))
        self.assertEqual(vault.summary(), VaultSummary(text_messages=1, sensor_readings=2, log_batches=1))

    def test_metadata(self):
        self.vault.add("a", TextMessage("abc"))
        self.vault.add("b", SensorReading(1.0))
        meta = self.vault.metadata()
        self.assertEqual(meta.location, "Test Vault")
        self.assertEqual(meta.storage_capacity, Kilobytes(1))
        self.assertEqual(meta.current_usage, 11)
        self.assertEqual(meta.resource_count, 2)

    def test_non_string_keys(self):
        vault = Vault("ints", Kilobytes(1))
        vault.add(7, TextMessage("seven"))
        self.assertEqual(vault.get(7), TextMessage("seven"))
        with self.assertRaises(ResourceNotFound) as ctx:
            vault.remove(8)
        self.assertEqual(ctx.exception.key, "8")

    def test_list_keys_and_items(self):
        items = {"k1": TextMessage("one"), "k2": SensorReading(2.0), "k3": SystemLogBatch(["three"])}
        for key, record in items.items():
            self.vault.add(key, record)
        self.assertCountEqual(self.vault.list_keys(), items.keys())
        self.assertCountEqual(self.vault.get_all_items(), items.values())


class TestPersistence(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.vault = Vault("Archive", Megabytes(1))
        self.vault.add("greeting", TextMessage("Hello, wörld"))
        self.vault.add("temp", SensorReading(-12.125))
        self.vault.add("boot", SystemLogBatch(["kernel up", "", "net ready"]))

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def assertSameVault(self, restored, original):
        self.assertEqual(restored.location, original.location)
        self.assertEqual(restored.storage_capacity, original.storage_capacity)
        self.assertEqual(restored.resources, original.resources)

    def test_json_round_trip(self):
        path = self.path("vault.json")
        save(self.vault, path)
        self.assertSameVault(load(path), self.vault)

    def test_sqlite_round_trip(self):
        path = self.path("vault.db")
        save(self.vault, path)
        self.assertSameVault(load(path), self.vault)

    def test_sqlite_keeps_key_types(self):
        vault = Vault("mixed", Kilobytes(4))
        vault.add(1, TextMessage("int key"))
        vault.add(("room", 2), SensorReading(3.5))
        path = self.path("mixed.sqlite")
        save(vault, path)
        self.assertSameVault(load(path), vault)

    def test_json_key_type(self):
        vault = Vault("ints", Kilobytes(1))
        vault.add(42, SensorReading(1.0))
        path = self.path("ints.json")
        save(vault, path)
        self.assertSameVault(load(path, key_type=int), vault)

    def test_empty_vault_round_trip(self):
        vault = Vault("", Kilobytes(0))
        for name in ("empty.json", "empty.db"):
            save(vault, self.path(name))
            self.assertSameVault(load(self.path(name)), vault)

    def test_document_layout(self):
        path = self.path("vault.json")
        save(self.vault, path)
        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
        self.assertEqual(set(document), {"location", "storage_capacity", "resources"})
        self.assertEqual(document["storage_capacity"], {"unit": "MB", "count": 1})
        self.assertEqual(document["resources"]["temp"], {"type": "SensorReading", "payload": -12.125})

    def test_save_overwrites(self):
        path = self.path("vault.db")
        save(self.vault, path)
        self.vault.remove("boot")
        save(self.vault, path)
        self.assertEqual(sorted(load(path).list_keys()), ["greeting", "temp"])

    def test_save_creates_parent_directories(self):
        path = self.path(os.path.join("nested", "dir", "vault.json"))
        save(self.vault, path)
        self.assertTrue(os.path.exists(path))

    def test_load_missing_file(self):
        for name in ("missing.json", "missing.db"):
            with self.assertRaises(IoFailure):
                load(self.path(name))

    def test_load_malformed_json(self):
        path = self.path("broken.json")
        with open(path, "w") as fh:
            fh.write("{not json")
        with self.assertRaises(IoFailure) as ctx:
            load(path)
        self.assertIn("Malformed", str(ctx.exception))

    def test_load_rejects_unknown_fields(self):
        path = self.path("extra.json")
        with open(path, "w") as fh:
            json.dump({"location": "x", "storage_capacity": {"unit": "KB", "count": 1},
                       "resources": {}, "version": 2}, fh)
        with self.assertRaises(IoFailure):
            load(path)

    def test_load_rejects_bad_record(self):
        path = self.path("bad_record.json")
        with open(path, "w") as fh:
            json.dump({"location": "x", "storage_capacity": {"unit": "KB", "count": 1},
                       "resources": {"a": {"type": "Photo", "payload": "x"}}}, fh)
        with self.assertRaises(IoFailure):
            load(path)

    def test_load_rejects_over_capacity(self):
        path = self.path("over.json")
        with open(path, "w") as fh:
            json.dump({"location": "x", "storage_capacity": {"unit": "KB", "count": 0},
                       "resources": {"a": {"type": "TextMessage", "payload": "x"}}}, fh)
        with self.assertRaises(IoFailure):
            load(path)

    def write_document(self, name, text):
        path = self.path(name)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text)
        return path

    def test_load_out_of_range_sensor_value(self):
        path = self.write_document("huge.json", '{"location": "x", "storage_capacity": {"unit": "KB", "count": 1}, '
                                   '"resources": {"a": {"type": "SensorReading", "payload": 1' + "0" * 400 + "}}}")
        with self.assertRaises(IoFailure) as ctx:
            load(path)
        self.assertIn("Malformed", str(ctx.exception))

    def test_load_lone_surrogate_text(self):
        path = self.write_document("surrogate.json", '{"location": "x", "storage_capacity": {"unit": "KB", "count": 1}, '
                                   '"resources": {"a": {"type": "TextMessage", "payload": "\\ud800"}}}')
        with self.assertRaises(IoFailure) as ctx:
            load(path)
        self.assertIn("Malformed", str(ctx.exception))

    def test_load_keys_colliding_after_decoding(self):
        path = self.write_document("ints.json", '{"location": "x", "storage_capacity": {"unit": "KB", "count": 1}, '
                                   '"resources": {"1": {"type": "SensorReading", "payload": 1.0}, '
                                   '"01": {"type": "SensorReading", "payload": 2.0}}}')
        self.assertEqual(len(load(path)), 2)
        with self.assertRaises(IoFailure) as ctx:
            load(path, key_type=int)
        self.assertIn("Malformed", str(ctx.exception))

    def test_load_or_create_keeps_corrupt_file(self):
        path = self.write_document("corrupt.json", "{not json")
        with self.assertRaises(IoFailure):
            load_or_create(path, "New", Kilobytes(2))
        self.assertTrue(os.path.exists(path))

    def test_load_garbage_database(self):
        path = self.path("garbage.db")
        with open(path, "wb") as fh:
            fh.write(b"this is not sqlite" * 100)
        with self.assertRaises(IoFailure):
            load(path)

    def test_colliding_json_keys(self):
        vault = Vault("clash", Kilobytes(1))
        vault.add(1, TextMessage("int"))
        vault.add("1", TextMessage("str"))
        with self.assertRaises(IoFailure):
            save(vault, self.path("clash.json"))

    def test_load_or_create(self):
        path = self.path("vault.json")
        fresh = load_or_create(path, "New", Kilobytes(2))
        self.assertEqual(fresh.location, "New")
        self.assertEqual(len(fresh), 0)
        save(self.vault, path)
        self.assertSameVault(load_or_create(path, "New", Kilobytes(2)), self.vault)

    def test_delete_vault_file(self):
        path = self.path("vault.db")
        save(self.vault, path)
        self.assertTrue(delete_vault_file(path))
        self.assertFalse(os.path.exists(path))
        self.assertFalse(delete_vault_file(path))


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.no_dotenv = os.path.join(self.tmp.name, "absent.env")

    def tearDown(self):
        self.tmp.cleanup()

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(self.no_dotenv)
        self.assertEqual(config.location, "Global Vault")
        self.assertEqual(config.capacity, Gigabytes(50))
        self.assertFalse(config.persist)
        self.assertTrue(config.vault_file.endswith(os.path.join(".memoria", "vault.json")))

    def test_environment_overrides(self):
        env = {"VAULT_NAME": "Lab", "VAULT_CAPACITY_GB": "2", "VAULT_PERSIST": "TRUE", "VAULT_FILE": "lab.db"}
        with mock.patch.dict(os.environ, env, clear=True):
            config = load_config(self.no_dotenv)
        self.assertEqual((config.location, config.capacity, config.vault_file, config.persist),
                         ("Lab", Gigabytes(2), "lab.db", True))

    def test_invalid_capacity_falls_back(self):
        for raw in ("lots", "-3"):
            with mock.patch.dict(os.environ, {"VAULT_CAPACITY_GB": raw}, clear=True):
                self.assertEqual(load_config(self.no_dotenv).capacity, Gigabytes(50))

    def test_dotenv_file(self):
        dotenv_path = os.path.join(self.tmp.name, ".env")
        with open(dotenv_path, "w") as fh:
            fh.write("VAULT_NAME=From File\nVAULT_CAPACITY_GB=3\n")
        with mock.patch.dict(os.environ, {"VAULT_CAPACITY_GB": "9"}, clear=True):
            config = load_config(dotenv_path)
        self.assertEqual(config.location, "From File")
        self.assertEqual(config.capacity, Gigabytes(9))

    def test_open_and_close_vault(self):
        path = os.path.join(self.tmp.name, "vault.json")
        env = {"VAULT_NAME": "Session", "VAULT_CAPACITY_GB": "1", "VAULT_PERSIST": "true", "VAULT_FILE": path}
        with mock.patch.dict(os.environ, env, clear=True):
            config = load_config(self.no_dotenv)
        vault = open_vault(config)
        vault.add("note", TextMessage("remember"))
        close_vault(vault, config)
        reopened = open_vault(config)
        self.assertEqual(reopened.get("note"), TextMessage("remember"))

    def test_no_persistence(self):
        path = os.path.join(self.tmp.name, "vault.json")
        with mock.patch.dict(os.environ, {"VAULT_FILE": path}, clear=True):
            config = load_config(self.no_dotenv)
        vault = open_vault(config)
        vault.add("note", TextMessage("gone"))
        close_vault(vault, config)
        self.assertFalse(os.path.exists(path))


if __name__ == '__main__':
    unittest.main()
