from __future__ import annotations

import unittest
from datetime import date

from x_analytics.dedupe import SeenKeys
from x_analytics.merge import dataset_transforms, merge_transforms
from x_analytics.records import FileTransform, PostItem, RecordType
from x_analytics.transform import TransformOptions, transform_file

_OPTIONS = TransformOptions(today=date(2024, 2, 1))


def _content_csv(rows: list[tuple[str, str, int]]) -> str:
    lines = ["Post id,Date,Post text,Impressions,Likes"]
    for post_id, text, impressions in rows:
        lines.append(f"{post_id},2024-01-05,{text},{impressions},1")
    return "\n".join(lines) + "\n"


def _account_csv(rows: list[tuple[str, int, int]]) -> str:
    lines = ["Date,Impressions,Likes,Replies,New follows"]
    for day, impressions, follows in rows:
        lines.append(f"{day},{impressions},2,1,{follows}")
    return "\n".join(lines) + "\n"


class TestMergeTransforms(unittest.TestCase):
    def test_dedupes_posts_first_seen_wins(self) -> None:
        a = transform_file(
            "a.csv",
            _content_csv([(f"a{i}", f"from file A {i}", 10 * i) for i in range(1, 6)]),
            options=_OPTIONS,
        )
        b = transform_file(
            "b.csv",
            _content_csv(
                [
                    ("a1", "copy in file B", 999),
                    ("a2", "copy in file B", 999),
                    ("a3", "copy in file B", 999),
                    ("b1", "only in B", 5),
                    ("b2", "only in B", 6),
                ]
            ),
            options=_OPTIONS,
        )

        merged = merge_transforms([a, b], fallback_day=_OPTIONS.fallback_day())

        assert merged.content is not None
        posts = merged.content.posts
        self.assertEqual(len(posts), 5 + 5 - 3)
        by_id = {p.id: p for p in posts}
        for repeated in ("a1", "a2", "a3"):
            self.assertEqual(by_id[repeated].text, f"from file A {repeated[1]}")
            self.assertNotEqual(by_id[repeated].impressions, 999)
        self.assertEqual(merged.sources, ("a.csv", "b.csv"))

    def test_account_days_are_concatenated(self) -> None:
        first = transform_file("jan.csv", _account_csv([("2024-01-01", 100, 2), ("2024-01-02", 100, 1)]))
        second = transform_file("feb.csv", _account_csv([("2024-02-01", 50, 4)]))

        merged = merge_transforms([second, first])

        assert merged.account is not None
        self.assertEqual(len(merged.account.days), 3)
        self.assertEqual(merged.account.days[0].date, date(2024, 1, 1))
        self.assertEqual(merged.daily_series, merged.account.days)
        self.assertEqual(merged.summary.total_impressions, 250)
        self.assertEqual(merged.summary.current_followers, 7)

    def test_account_totals_take_precedence_over_posts(self) -> None:
        account = transform_file("account.csv", _account_csv([("2024-01-05", 600, 0)]))
        content = transform_file("content.csv", _content_csv([("p1", "hello", 800)]), options=_OPTIONS)

        merged = merge_transforms([content, account], fallback_day=_OPTIONS.fallback_day())

        self.assertEqual(merged.summary.total_impressions, 600)
        self.assertEqual(merged.summary.total_posts, 1)
        self.assertEqual(len(merged.top_posts), 1)
        self.assertEqual(merged.hook_performance[0].posts, 1)

    def test_content_series_without_account(self) -> None:
        content = transform_file("content.csv", _content_csv([("p1", "hello", 800)]), options=_OPTIONS)

        merged = merge_transforms([content], fallback_day=_OPTIONS.fallback_day())

        assert merged.content is not None
        self.assertIsNone(merged.account)
        self.assertEqual(merged.daily_series, merged.content.daily)
        self.assertEqual(merged.summary.total_impressions, 800)

    def test_empty_merge(self) -> None:
        merged = merge_transforms([])
        self.assertTrue(merged.is_empty)
        self.assertEqual(merged.daily_series, ())
        self.assertEqual(merged.summary.engagement_rate, 0.0)

    def test_mismatched_record_type(self) -> None:
        account = transform_file("account.csv", _account_csv([("2024-01-05", 600, 0)]))
        bad = FileTransform("account.csv", RecordType.VIDEO_ANALYTICS, account.result)
        with self.assertRaises(TypeError):
            merge_transforms([bad])

    def test_dataset_transforms_allow_remerge(self) -> None:
        a = transform_file("a.csv", _content_csv([("p1", "original", 10)]), options=_OPTIONS)
        b = transform_file("b.csv", _content_csv([("p1", "replacement", 20), ("p2", "new", 5)]), options=_OPTIONS)

        first = merge_transforms([a], fallback_day=_OPTIONS.fallback_day())
        again = merge_transforms(
            [*dataset_transforms(first), b],
            fallback_day=_OPTIONS.fallback_day(),
            sources=[*first.sources, "b.csv"],
        )

        assert again.content is not None
        self.assertEqual([p.text for p in again.content.posts], ["original", "new"])
        self.assertEqual(again.sources, ("a.csv", "b.csv"))

    def test_profile_followers_fill_post_series(self) -> None:
        text = "Post id,Date,Post text,Impressions\np1,2024-01-01,first,10\np2,2024-01-03,third,30\n"
        t = transform_file("api", text, options=_OPTIONS)

        merged = merge_transforms([t], fallback_day=_OPTIONS.fallback_day(), profile_followers=42)

        self.assertEqual([d.impressions for d in merged.daily_series], [10, 0, 30])
        self.assertEqual({d.followers for d in merged.daily_series}, {42})


class TestSeenKeys(unittest.TestCase):
    def test_tracks_posts_by_trimmed_id(self) -> None:
        seen = SeenKeys()
        seen.add_post(PostItem(id="42", text="first"))

        self.assertTrue(seen.has_post(PostItem(id=" 42 ", text="second")))
        self.assertFalse(seen.has_post(PostItem(id="43", text="other")))
        self.assertEqual(seen.keys, {"id:42"})


if __name__ == "__main__":
    unittest.main()
