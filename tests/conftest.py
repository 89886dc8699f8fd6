"""
Shared fixtures: a small average set, synthetic OHLC bars and a temporary
SQLite instance.
"""

import numpy as np
import pandas as pd
import pytest

from pivotlab.config.settings import PipelineSettings
from pivotlab.config.statistics import StatisticsConfig
from pivotlab.core.averages import AverageDefinition, AverageSet, AverageType
from pivotlab.data.store import SQLiteBarStore


START_TIME = 1_700_000_000_000
MINUTE = 60_000


def make_ohlc(n_bars: int = 120, seed: int = 42, start_time: int = START_TIME) -> pd.DataFrame:
    """Oscillating price series with noise, one bar per minute."""
    rng = np.random.default_rng(seed)
    i = np.arange(n_bars)
    close = 100 + 5 * np.sin(i / 6) + rng.normal(0, 0.3, n_bars).cumsum() * 0.2
    open_ = np.concatenate([[close[0]], close[:-1]]) + rng.normal(0, 0.05, n_bars)
    high = np.maximum(open_, close) + rng.uniform(0.05, 0.5, n_bars)
    low = np.minimum(open_, close) - rng.uniform(0.05, 0.5, n_bars)
    return pd.DataFrame({
        "time": start_time + i * MINUTE,
        "open": open_,
        "high": high,
        "low": low,
        "close": close,
    })


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def averages():
    """Periods 2, 4, 8: candle sizes 1, 2, 4 with counts 6, 4, 2."""
    return AverageSet([
        AverageDefinition(AverageType.SMA, 2, (2,)),
        AverageDefinition(AverageType.SMA, 4, (2,)),
        AverageDefinition(AverageType.WMA, 8, (2,)),
    ])


@pytest.fixture
def config():
    return StatisticsConfig(
        name="test",
        averages=[
            {"type": "SMA", "period": 2, "smooths": [2]},
            {"type": "SMA", "period": 4, "smooths": [2]},
            {"type": "WMA", "period": 8, "smooths": [2]},
        ],
        bars_ahead=5,
        percent_calc=10,
        percent_edit=10,
    )


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(
        db_path=str(tmp_path / "stats.db"),
        log_dir=str(tmp_path / "logs"),
        export_dir=str(tmp_path / "exports"),
        batch_size=50,
        pool_size=4,
        progress_every=10,
    )


@pytest.fixture
def ohlc_frame():
    return make_ohlc()


@pytest.fixture
def store(settings, averages):
    return SQLiteBarStore(settings.db_path, averages)


@pytest.fixture
def loaded_store(store, ohlc_frame):
    store.import_bars(ohlc_frame)
    return store
