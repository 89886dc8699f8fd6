"""
Candle Shape Features
=====================
Vectorized shape descriptors of OHLC aggregates.

All functions accept numpy arrays (or scalars) and return arrays of the
same shape. Degenerate candles (zero range) yield 0 instead of dividing.
"""

from typing import Dict

import numpy as np


CANDLE_FEATURES = ("range", "body_factor", "body_pos", "rel_pos", "sign")


def candle_feature_name(size: int, order: int, feature: str) -> str:
    """Pattern column of one (size, order) window feature."""
    return f"candle_{size}_{order}_{feature}"


def candle_range_name(size: int, feature: str) -> str:
    """Range statistics key of a feature over all windows of one size."""
    return f"candle_{size}_{feature}"


def candle_range(high, low) -> np.ndarray:
    return np.abs(np.asarray(high, dtype=float) - np.asarray(low, dtype=float))


def _safe_ratio(numerator, denominator) -> np.ndarray:
    numerator = np.asarray(numerator, dtype=float)
    denominator = np.asarray(denominator, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(denominator != 0, numerator / denominator, 0.0)
    return ratio


def body_factor(open_, high, low, close) -> np.ndarray:
    """Body size over range, in [0, 1]."""
    rng = candle_range(high, low)
    body = np.minimum(np.abs(np.asarray(open_, dtype=float) - np.asarray(close, dtype=float)), rng)
    return _safe_ratio(body, rng)


def body_position(open_, high, low, close) -> np.ndarray:
    """Position of the body center within the range, 0 at the low."""
    rng = candle_range(high, low)
    center = (np.asarray(open_, dtype=float) + np.asarray(close, dtype=float)) / 2
    return _safe_ratio(center - np.asarray(low, dtype=float), rng)


def candle_sign(open_, high, low, close) -> np.ndarray:
    """Body factor signed by direction, 0 for a doji."""
    direction = np.sign(np.asarray(close, dtype=float) - np.asarray(open_, dtype=float))
    return direction * body_factor(open_, high, low, close)


def weighted_close(high, low, close) -> np.ndarray:
    return (np.asarray(high, dtype=float) + np.asarray(low, dtype=float) + 2 * np.asarray(close, dtype=float)) / 4


def relative_position(wcp, wcp_previous) -> np.ndarray:
    """wcp / wcp_previous - 1, 0 where the previous value is 0 or missing."""
    wcp = np.asarray(wcp, dtype=float)
    previous = np.nan_to_num(np.asarray(wcp_previous, dtype=float), nan=0.0)
    return np.where(previous != 0, _safe_ratio(wcp, previous) - 1, 0.0)


def shape_features(open_, high, low, close, wcp_previous) -> Dict[str, np.ndarray]:
    """All five shape features, keyed by feature name."""
    return {
        "range": candle_range(high, low),
        "body_factor": body_factor(open_, high, low, close),
        "body_pos": body_position(open_, high, low, close),
        "rel_pos": relative_position(weighted_close(high, low, close), wcp_previous),
        "sign": candle_sign(open_, high, low, close),
    }
