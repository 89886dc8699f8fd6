"""
Pattern Export
==============
Writes the labeled pattern rows to CSV files for model training:

- <name>_all.csv: every pattern in the labeled time span
- <name>_train.csv / <name>_test.csv: split in blocks of 20 patterns

Each file holds the input columns followed by a one-hot encoding of the
label (down, flat, up). Labels are read from the bar table at export time.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
from loguru import logger

from pivotlab.data.store import SQLiteBarStore


OUTPUT_COLUMNS = {-1: "out_down", 0: "out_flat", 1: "out_up"}
BLOCK_SIZE = 20


@dataclass
class ExportResult:
    all_path: Path
    train_path: Path
    test_path: Path
    total: int
    train: int
    test: int


def split_indices(total: int, training_factor: float, seed: Optional[int] = None):
    """
    Assign pattern positions to training and test.

    Positions are drawn in random order and dealt in blocks of 20: the
    first int(20 * training_factor) of each block go to training.

    Returns:
        (train_indices, test_indices), both sorted
    """
    if training_factor <= 0 or training_factor >= 1:
        raise ValueError(f"Invalid training factor {training_factor}")
    train_count = int(BLOCK_SIZE * training_factor)
    permutation = np.random.default_rng(seed).permutation(total)
    in_block = np.arange(total) % BLOCK_SIZE
    return np.sort(permutation[in_block < train_count]), np.sort(permutation[in_block >= train_count])


class PatternExporter:
    """
    Exports patterns between the first and last labeled bar.

    Usage:
        exporter = PatternExporter(store, export_dir="exports")
        result = exporter.export("eurusd", training_factor=0.8, seed=42)
    """

    def __init__(self, store: SQLiteBarStore, export_dir: str):
        self.store = store
        self.export_dir = Path(export_dir)

    def build_frame(self, calculated: bool = True) -> pd.DataFrame:
        """Input columns plus one-hot outputs for the labeled span."""
        inputs = self.store.averages.pattern_input_names()
        outputs = list(OUTPUT_COLUMNS.values())

        bounds = self.store.labeled_time_bounds()
        if bounds is None:
            return pd.DataFrame(columns=inputs + outputs)

        # Labels are recomputed every run, pattern rows keep the ones of their first run
        label_column = "label" if calculated else "label_edit"
        patterns = self.store.load_patterns(*bounds).drop(columns=["label", "label_edit"])
        bars = self.store.load_bars([label_column])
        patterns = patterns.merge(bars, on="time", how="left")
        labels = patterns[label_column].fillna(0).astype(int)

        frame = patterns[inputs].copy()
        for value, column in OUTPUT_COLUMNS.items():
            frame[column] = (labels == value).astype(float).to_numpy()
        return frame

    def export(
        self,
        name: str,
        training_factor: float = 0.8,
        calculated: bool = True,
        seed: Optional[int] = None
    ) -> ExportResult:
        frame = self.build_frame(calculated)
        train_idx, test_idx = split_indices(len(frame), training_factor, seed)

        self.export_dir.mkdir(parents=True, exist_ok=True)
        prefix = name if calculated else f"{name}_edit"
        paths: Dict[str, Path] = {
            part: self.export_dir / f"{prefix}_{part}.csv" for part in ("all", "train", "test")
        }

        frame.to_csv(paths["all"], index=False)
        frame.iloc[train_idx].to_csv(paths["train"], index=False)
        frame.iloc[test_idx].to_csv(paths["test"], index=False)

        logger.info(
            f"Exported {len(frame)} patterns ({len(train_idx)} train, {len(test_idx)} test) "
            f"to {self.export_dir}"
        )
        return ExportResult(
            all_path=paths["all"],
            train_path=paths["train"],
            test_path=paths["test"],
            total=len(frame),
            train=len(train_idx),
            test=len(test_idx),
        )
