import os
import shutil
import tempfile
import unittest
from storage import (
    ensure_dir,
    get_file_summary,
    load_raw_json,
    load_records_jsonl,
    remove_file,
    save_raw_json,
    save_records_jsonl,
)


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.json_path = os.path.join(self.tmpdir, "cache", "articles.json")
        self.jsonl_path = os.path.join(self.tmpdir, "log", "actions.jsonl")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_ensure_dir(self):
        new_dir = os.path.join(self.tmpdir, "subdir")
        ensure_dir(new_dir)
        self.assertTrue(os.path.isdir(new_dir))

    def test_save_and_load_raw_json(self):
        data = {"42": {"id": 42, "title": "A"}}
        self.assertTrue(save_raw_json(data, self.json_path))
        self.assertEqual(load_raw_json(self.json_path), data)
        self.assertFalse(os.path.exists(self.json_path + ".tmp"))

    def test_save_leaves_no_temp_files(self):
        save_raw_json({"1": {}}, self.json_path)
        save_raw_json({"2": {}}, self.json_path)
        self.assertEqual(os.listdir(os.path.dirname(self.json_path)), ["articles.json"])

    def test_failed_save_keeps_previous_file(self):
        save_raw_json({"1": {"id": 1}}, self.json_path)
        self.assertFalse(save_raw_json({"bad": object()}, self.json_path))
        self.assertEqual(load_raw_json(self.json_path), {"1": {"id": 1}})
        self.assertEqual(os.listdir(os.path.dirname(self.json_path)), ["articles.json"])

    def test_load_raw_json_missing_file_returns_default(self):
        self.assertEqual(load_raw_json(self.json_path, default={}), {})

    def test_load_raw_json_corrupt_file_returns_default(self):
        ensure_dir(os.path.dirname(self.json_path))
        with open(self.json_path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(load_raw_json(self.json_path, default=[]), [])

    def test_save_records_jsonl(self):
        records = [{"article_id": 1}, {"article_id": 2}]
        self.assertTrue(save_records_jsonl(records, self.jsonl_path))
        with open(self.jsonl_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
        self.assertEqual(len(lines), 2)
        self.assertIn("article_id", lines[0])

    def test_load_records_jsonl_skips_corrupt_lines(self):
        ensure_dir(os.path.dirname(self.jsonl_path))
        with open(self.jsonl_path, "w", encoding="utf-8") as f:
            f.write('{"a": 1}\n')
            f.write("garbage\n")
            f.write("\n")
            f.write('{"a": 2}\n')
        self.assertEqual(load_records_jsonl(self.jsonl_path), [{"a": 1}, {"a": 2}])

    def test_save_fails_when_directory_is_a_file(self):
        blocker = os.path.join(self.tmpdir, "blocker")
        with open(blocker, "w") as f:
            f.write("x")
        self.assertFalse(save_records_jsonl([{"a": 1}], os.path.join(blocker, "log.jsonl")))

    def test_get_file_summary(self):
        save_records_jsonl([{"a": 1}, {"a": 2}], self.jsonl_path)
        summary = get_file_summary(self.jsonl_path)
        self.assertEqual(summary["record_count"], 2)
        self.assertTrue(summary["size_bytes"] > 0)

    def test_get_file_summary_missing_file(self):
        summary = get_file_summary(os.path.join(self.tmpdir, "nope.jsonl"))
        self.assertIn("error", summary)

    def test_remove_file(self):
        save_records_jsonl([{"a": 1}], self.jsonl_path)
        self.assertIsNone(remove_file(self.jsonl_path))
        self.assertFalse(os.path.exists(self.jsonl_path))
        # Removing twice is fine
        self.assertIsNone(remove_file(self.jsonl_path))


if __name__ == "__main__":
    unittest.main()
