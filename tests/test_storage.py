from __future__ import annotations

import json
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

from x_analytics.analytics import build_view
from x_analytics.errors import StorageError
from x_analytics.importer import Upload, import_uploads
from x_analytics.serialize import (
    PAYLOAD_FORMAT_VERSION,
    clear_dataset,
    dataset_from_payload,
    dataset_to_payload,
    load_dataset,
    save_dataset,
    view_to_payload,
)
from x_analytics.storage import SQLiteKeyValueStore
from x_analytics.storage_schema import SCHEMA_VERSION, schema_version

_KEY = "x_analytics.dataset"

_ACCOUNT_CSV = """\
Date,Impressions,Likes,New follows
2024-01-01,100,5,5
2024-01-02,200,8,3
2024-01-03,300,12,-1
"""

_CONTENT_CSV = """\
Post id,Date,Post text,Post link,Impressions,Likes
1001,2024-01-02T09:15:00Z,Everyone's sleeping on this protocol,https://x.com/i/status/1001,250,12
1002,2024-01-03 18:00,3 years ago I knew nothing,,120,4
"""

_VIDEO_CSV = """\
Date,Views,Watch Time (ms),Completion Rate
2024-01-01,100,90000,40
"""


def _dataset():
    result = import_uploads(
        [
            Upload("account.csv", _ACCOUNT_CSV),
            Upload("content.csv", _CONTENT_CSV),
            Upload("video.csv", _VIDEO_CSV),
        ],
        today=date(2024, 2, 1),
    )
    return result.dataset


class TestSQLiteKeyValueStore(unittest.TestCase):
    def test_get_set_remove(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as store:
            self.assertIsNone(store.get("missing"))
            self.assertEqual(store.get("missing", {"a": 1}), {"a": 1})

            store.set("k", {"n": 1, "items": [1, 2]})
            store.set("k", {"n": 2})
            self.assertEqual(store.get("k"), {"n": 2})
            self.assertEqual(store.keys(), ["k"])

            store.remove("k")
            self.assertIsNone(store.get("k"))

    def test_rejects_non_json_values(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as store:
            with self.assertRaises(StorageError):
                store.set("k", {"bad": float("nan")})
            with self.assertRaises(StorageError):
                store.set("k", {"bad": object()})

    def test_persists_across_connections(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            db_path = Path(td) / "nested" / "state.sqlite"

            with SQLiteKeyValueStore.open(db_path) as store:
                store.set("k", [1, 2, 3])

            with SQLiteKeyValueStore.open(db_path) as store:
                self.assertEqual(store.get("k"), [1, 2, 3])
                self.assertEqual(schema_version(store.conn), SCHEMA_VERSION)

    def test_records_file_imports(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as store:
            store.record_file_import(
                batch_id="b1",
                file_name="account.csv",
                status="imported",
                record_type="account_overview",
                rows=3,
            )
            store.record_file_import(
                batch_id="b1",
                file_name="notes.csv",
                status="failed",
                reason_code="unrecognized_schema",
                message="Columns do not match",
            )
            store.record_file_import(batch_id="b2", file_name="other.csv", status="imported")

            rows = store.file_imports(batch_id="b1")
            self.assertEqual([r.file_name for r in rows], ["account.csv", "notes.csv"])
            self.assertEqual(rows[0].rows, 3)
            self.assertEqual(rows[1].reason_code, "unrecognized_schema")
            self.assertIsNone(rows[1].rows)
            self.assertEqual(len(store.file_imports()), 3)

            with self.assertRaises(ValueError):
                store.record_file_import(batch_id=" ", file_name="x.csv", status="failed")


class TestDatasetPersistence(unittest.TestCase):
    def test_round_trip(self) -> None:
        dataset = _dataset()

        with SQLiteKeyValueStore.open(":memory:") as store:
            save_dataset(store, dataset, key=_KEY)
            loaded = load_dataset(store, key=_KEY)

        assert loaded is not None
        self.assertEqual(loaded.summary, dataset.summary)
        self.assertEqual(loaded.sources, dataset.sources)
        self.assertEqual(loaded.daily_series, dataset.daily_series)
        self.assertEqual(loaded.top_posts, dataset.top_posts)
        self.assertEqual(loaded.hook_performance, dataset.hook_performance)
        assert loaded.video is not None and dataset.video is not None
        self.assertEqual(loaded.video.summary, dataset.video.summary)

    def test_payload_is_plain_json(self) -> None:
        payload = dataset_to_payload(_dataset(), now=datetime(2024, 1, 4, 12, 0))
        decoded = json.loads(json.dumps(payload, allow_nan=False))

        self.assertEqual(decoded["format_version"], PAYLOAD_FORMAT_VERSION)
        self.assertEqual(decoded["content"]["posts"][0]["timestamp"], "2024-01-02T09:15:00")
        self.assertEqual(decoded["projections"]["summary"]["total_impressions"], 600)
        self.assertEqual(decoded["projections"]["top_posts"][0]["date"], "2 days ago")

    def test_load_missing_and_clear(self) -> None:
        with SQLiteKeyValueStore.open(":memory:") as store:
            self.assertIsNone(load_dataset(store, key=_KEY))

            save_dataset(store, _dataset(), key=_KEY)
            clear_dataset(store, key=_KEY)
            self.assertIsNone(load_dataset(store, key=_KEY))

    def test_rejects_bad_payloads(self) -> None:
        for payload in (
            [],
            {"format_version": 99},
            {"format_version": PAYLOAD_FORMAT_VERSION, "account": {"days": "nope"}},
            {"format_version": PAYLOAD_FORMAT_VERSION, "account": {"days": [{"date": "never"}]}},
            {"format_version": PAYLOAD_FORMAT_VERSION, "content": {"posts": [{"text": "no id"}]}},
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(StorageError):
                    dataset_from_payload(payload)  # type: ignore[arg-type]

    def test_view_payload(self) -> None:
        view = build_view(_dataset(), "7d")
        payload = view_to_payload(view, summary_limit=1, now=datetime(2024, 1, 4, 12, 0))

        self.assertEqual(payload["window"], "7d")
        self.assertEqual(payload["reference_date"], "2024-01-03")
        self.assertEqual(payload["start_date"], "2023-12-28")
        self.assertEqual(len(payload["top_posts"]), 2)
        self.assertEqual(len(payload["summary_posts"]), 1)
        self.assertEqual(payload["summary"]["current_followers"], 7)
        self.assertEqual(payload["video_summary"]["watch_time_minutes"], 2)
        json.dumps(payload, allow_nan=False)


if __name__ == "__main__":
    unittest.main()
