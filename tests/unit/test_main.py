"""
Unit Tests - Batch Load Entry Point
"""
import pytest

from warehouse.main import build_parser, main
from warehouse.storage import LayerStore


class TestMain:
    """Tests for the warehouse-load command"""

    def test_parser(self):
        args = build_parser().parse_args(["--raw-dir", "in", "--skip-quality"])

        assert args.raw_dir == "in"
        assert args.output_dir is None
        assert args.skip_quality

    def test_full_load(self, raw_dir, tmp_path):
        out = tmp_path / "published"

        code = main(["--raw-dir", str(raw_dir), "--output-dir", str(out), "--log-level", "WARNING"])

        assert code == 0
        store = LayerStore(out)
        assert set(store.read("silver")) == {
            "customer_profiles",
            "product_versions",
            "sales_lines",
            "customer_demographics",
            "customer_locations",
            "product_categories",
        }
        assert store.read("gold")["fact_sales"].height == 5

    def test_quality_failures_fail_run_when_configured(self, raw_dir, tmp_path, monkeypatch):
        monkeypatch.setenv("PIPELINE_FAIL_ON_QUALITY_ERRORS", "true")

        code = main(["--raw-dir", str(raw_dir), "--output-dir", str(tmp_path / "out")])

        assert code == 1

    def test_skip_quality(self, raw_dir, tmp_path, monkeypatch):
        monkeypatch.setenv("PIPELINE_FAIL_ON_QUALITY_ERRORS", "true")

        code = main(["--raw-dir", str(raw_dir), "--output-dir", str(tmp_path / "out"), "--skip-quality"])

        assert code == 0

    def test_missing_raw_dir(self, tmp_path):
        code = main(["--raw-dir", str(tmp_path / "nowhere"), "--output-dir", str(tmp_path / "out")])

        assert code == 1
        assert not LayerStore(tmp_path / "out").exists("gold")

    def test_help_exits(self):
        with pytest.raises(SystemExit):
            main(["--help"])
