"""
Tests for the pipeline CLI
==========================
"""

import json

import pandas as pd
import pytest

from cli.run_pipeline import main, read_bars_csv
from pivotlab.config.settings import get_settings


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def cli_env(tmp_path, monkeypatch, config, ohlc_frame):
    monkeypatch.setenv("PIVOTLAB_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("PIVOTLAB_EXPORT_DIR", str(tmp_path / "exports"))
    get_settings.cache_clear()

    config_path = tmp_path / "stats.yaml"
    config.to_yaml(str(config_path))

    csv_path = tmp_path / "bars.csv"
    bars = ohlc_frame.copy()
    bars["time"] = pd.to_datetime(bars["time"], unit="ms", utc=True).dt.strftime("%Y-%m-%d %H:%M:%S")
    bars.rename(columns={"time": "Date", "close": "Close"}).to_csv(csv_path, index=False)

    yield {"config": str(config_path), "csv": str(csv_path), "dir": tmp_path}
    get_settings.cache_clear()


class TestReadBarsCsv:

    def test_date_strings_become_epoch_ms(self, cli_env, ohlc_frame):
        frame = read_bars_csv(cli_env["csv"])
        assert list(frame.columns[:5]) == ["time", "open", "high", "low", "close"]
        assert frame["time"].tolist() == ohlc_frame["time"].tolist()


class TestCommands:

    def test_import_run_export_status(self, cli_env, ohlc_frame, capsys):
        common = ["--config", cli_env["config"], "--no-log-files"]

        assert main(common + ["import", "--csv", cli_env["csv"]]) == 0
        assert main(common + ["run"]) == 0
        assert main(common + ["export", "--seed", "1"]) == 0

        assert (cli_env["dir"] / "exports" / "test_all.csv").exists()

        capsys.readouterr()
        assert main(common + ["status"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["counts"]["bars"] == len(ohlc_frame)
        assert status["counts"]["patterns"] == len(ohlc_frame)

    def test_command_required(self, cli_env):
        with pytest.raises(SystemExit):
            main(["--config", cli_env["config"]])
