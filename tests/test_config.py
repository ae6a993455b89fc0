from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path

from x_analytics.config import config_sha256, load_config, load_config_or_default, transform_options
from x_analytics.config_schema import AppConfig
from x_analytics.errors import ConfigError


_VALID_YAML = """\
imports:
  batch_policy: atomic
  long_form_min_chars: 280

analytics:
  default_window: 7d
  top_posts_limit: 20
  summary_posts_limit: 5

storage:
  database: analytics.sqlite
  dataset_key: team.dataset
"""


class TestConfig(unittest.TestCase):
    def _write(self, td: str, text: str) -> Path:
        path = Path(td) / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

        self.assertEqual(cfg.imports.batch_policy, "atomic")
        self.assertEqual(cfg.imports.long_form_min_chars, 280)
        self.assertEqual(cfg.analytics.default_window, "7d")
        self.assertEqual(cfg.analytics.top_posts_limit, 20)
        self.assertEqual(cfg.storage.database, "analytics.sqlite")

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, ""))
        self.assertEqual(cfg, AppConfig())
        self.assertEqual(cfg.imports.batch_policy, "best_effort")
        self.assertEqual(cfg.analytics.top_posts_limit, 10)

    def test_rejects_invalid_values(self) -> None:
        bad = {
            "policy": _VALID_YAML.replace("batch_policy: atomic", "batch_policy: sometimes"),
            "window": _VALID_YAML.replace("default_window: 7d", "default_window: 14d"),
            "summary": _VALID_YAML.replace("summary_posts_limit: 5", "summary_posts_limit: 50"),
            "key": _VALID_YAML.replace("team.dataset", "team dataset"),
            "extra": _VALID_YAML + "\nunknown: 1\n",
            "not_mapping": "- a\n- b\n",
            "yaml": "imports: [\n",
        }
        for name, text in bad.items():
            with self.subTest(name=name):
                with tempfile.TemporaryDirectory() as td:
                    with self.assertRaises(ConfigError):
                        load_config(self._write(td, text))

    def test_error_message_names_field(self) -> None:
        text = _VALID_YAML.replace("top_posts_limit: 20", "top_posts_limit: 0")
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_config(self._write(td, text))
        self.assertIn("analytics.top_posts_limit", str(ctx.exception))

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(Path(td) / "missing.yaml")

    def test_load_config_or_default(self) -> None:
        self.assertEqual(load_config_or_default(None), AppConfig())
        self.assertEqual(load_config_or_default("  "), AppConfig())

    def test_transform_options(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

        opts = transform_options(cfg, today=date(2024, 1, 1))
        self.assertEqual(opts.top_posts_limit, 20)
        self.assertEqual(opts.long_form_min_chars, 280)
        self.assertEqual(opts.fallback_day(), date(2024, 1, 1))

    def test_config_hash_is_stable(self) -> None:
        a = AppConfig()
        b = AppConfig.model_validate({})
        self.assertEqual(config_sha256(a), config_sha256(b))
        self.assertNotEqual(
            config_sha256(a),
            config_sha256(AppConfig.model_validate({"imports": {"batch_policy": "atomic"}})),
        )


if __name__ == "__main__":
    unittest.main()
