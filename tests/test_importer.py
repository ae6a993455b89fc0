from __future__ import annotations

import json
import tempfile
import unittest
from datetime import date
from pathlib import Path

from x_analytics.config_schema import AppConfig, ImportsConfig
from x_analytics.errors import BatchImportError
from x_analytics.importer import FileImportFailure, Upload, import_uploads
from x_analytics.run_log import RunLogger

_TODAY = date(2024, 2, 1)

_ACCOUNT_CSV = """\
Account overview
Date,Impressions,Likes,Replies,Reposts,New follows,Unfollows
2024-01-01,100,5,1,0,5,0
2024-01-02,200,8,2,1,3,0
2024-01-03,300,12,3,2,-1,0
"""

_CONTENT_CSV = """\
Post id,Date,Post text,Impressions,Likes,Replies,Reposts
1001,2024-01-02 09:15,I analyzed 50 threads. 40% worked.,250,12,2,1
1002,2024-01-03 18:00,"Ship fast, ship often.",120,4,0,0
"""

_MORE_CONTENT_CSV = """\
Post id,Date,Post text,Impressions,Likes
1002,2024-01-03 18:00,edited copy,999,99
1003,2024-01-03 20:00,Why does nobody talk about this?,80,3
"""


class TestImportUploads(unittest.TestCase):
    def test_end_to_end_scenario(self) -> None:
        result = import_uploads(
            [Upload("account.csv", _ACCOUNT_CSV), Upload("content.csv", _CONTENT_CSV)],
            today=_TODAY,
        )

        self.assertTrue(result.ok)
        self.assertEqual(len(result.imported), 2)
        ds = result.dataset
        self.assertEqual(ds.summary.total_impressions, 600)
        self.assertEqual(ds.summary.current_followers, 7)
        self.assertEqual(len(ds.top_posts), 2)
        self.assertEqual(ds.summary.total_posts, 2)
        self.assertEqual(ds.sources, ("account.csv", "content.csv"))
        self.assertEqual(ds.summary.engagement_rate, 5.7)

    def test_best_effort_keeps_good_files(self) -> None:
        result = import_uploads(
            [
                Upload("empty.csv", "Date,Impressions\n"),
                Upload("account.csv", _ACCOUNT_CSV),
                Upload("notes.csv", "foo,bar\n1,2\n"),
                Upload("broken.csv", "Date,Impressions\nsoon,1\n"),
            ],
            today=_TODAY,
        )

        self.assertFalse(result.ok)
        self.assertEqual([t.name for t in result.imported], ["account.csv"])
        self.assertEqual(
            [(f.name, f.code) for f in result.failures],
            [
                ("empty.csv", "empty_input"),
                ("notes.csv", "unrecognized_schema"),
                ("broken.csv", "malformed_schema"),
            ],
        )
        self.assertEqual(result.dataset.summary.total_impressions, 600)
        self.assertEqual(result.dataset.sources, ("account.csv",))

    def test_atomic_policy_rejects_batch(self) -> None:
        cfg = AppConfig(imports=ImportsConfig(batch_policy="atomic"))

        with self.assertRaises(BatchImportError) as ctx:
            import_uploads(
                [Upload("account.csv", _ACCOUNT_CSV), Upload("notes.csv", "foo,bar\n1,2\n")],
                config=cfg,
                today=_TODAY,
            )

        failures = ctx.exception.failures
        self.assertEqual(len(failures), 1)
        assert isinstance(failures[0], FileImportFailure)
        self.assertEqual(failures[0].name, "notes.csv")
        self.assertIn("notes.csv", str(ctx.exception))
        self.assertEqual(len(ctx.exception.batch_id), 32)

    def test_failed_file_keeps_existing_data(self) -> None:
        first = import_uploads([Upload("account.csv", _ACCOUNT_CSV)], today=_TODAY)

        second = import_uploads(
            [Upload("notes.csv", "foo,bar\n1,2\n")],
            existing=first.dataset,
            today=_TODAY,
        )

        self.assertFalse(second.ok)
        self.assertEqual(second.dataset, first.dataset)
        self.assertEqual(second.dataset.summary.total_impressions, 600)

    def test_incremental_import_merges_with_existing(self) -> None:
        first = import_uploads([Upload("content.csv", _CONTENT_CSV)], today=_TODAY)
        second = import_uploads(
            [Upload("more.csv", _MORE_CONTENT_CSV)],
            existing=first.dataset,
            today=_TODAY,
        )

        ds = second.dataset
        assert ds.content is not None
        self.assertEqual([p.id for p in ds.content.posts], ["1001", "1002", "1003"])
        self.assertEqual(ds.content.posts[1].text, "Ship fast, ship often.")
        self.assertEqual(ds.sources, ("content.csv", "more.csv"))
        self.assertEqual(ds.summary.total_impressions, 250 + 120 + 80)

    def test_same_named_uploads_without_ids_are_kept(self) -> None:
        first = import_uploads(
            [Upload("posts.csv", "Post text,Impressions\nalpha,10\nbeta,20\n")],
            today=_TODAY,
        )
        second = import_uploads(
            [Upload("posts.csv", "Post text,Impressions\ngamma,30\ndelta,40\n")],
            existing=first.dataset,
            today=_TODAY,
        )

        ds = second.dataset
        assert ds.content is not None
        self.assertEqual([p.text for p in ds.content.posts], ["alpha", "beta", "gamma", "delta"])
        self.assertEqual(ds.summary.total_impressions, 100)

    def test_reimported_file_without_ids_is_deduplicated(self) -> None:
        upload = Upload("posts.csv", "Post text,Impressions\nalpha,10\nbeta,20\n")
        first = import_uploads([upload], today=_TODAY)
        second = import_uploads([upload], existing=first.dataset, today=_TODAY)

        self.assertEqual(second.dataset.summary.total_posts, 2)
        self.assertEqual(second.dataset.summary.total_impressions, 30)

    def test_accepts_mapping_uploads(self) -> None:
        result = import_uploads([{"name": "account.csv", "content": _ACCOUNT_CSV}], today=_TODAY)
        self.assertEqual(result.dataset.sources, ("account.csv",))

    def test_logs_batch_events(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            log_path = Path(td) / "run.log"
            with RunLogger.open(log_path, session_id="s1") as log:
                result = import_uploads(
                    [Upload("account.csv", _ACCOUNT_CSV), Upload("notes.csv", "foo,bar\n1,2\n")],
                    logger=log,
                    today=_TODAY,
                )

            records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]

        events = [r["event"] for r in records]
        self.assertEqual(events[0], "import_batch_started")
        self.assertEqual(events[-1], "import_batch_completed")
        self.assertIn("file_import_failed", events)

        failed = next(r for r in records if r["event"] == "file_import_failed")
        self.assertEqual(failed["file"], "notes.csv")
        self.assertEqual(failed["data"]["code"], "unrecognized_schema")
        self.assertTrue(all(r["batch_id"] == result.batch_id for r in records))
        self.assertTrue(all(r["session_id"] == "s1" for r in records))


if __name__ == "__main__":
    unittest.main()
