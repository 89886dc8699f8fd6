"""
Unit Tests for the Batch Writer
===============================
"""

import pytest

from pivotlab.data.writer import BatchWriter


def times(frame, count):
    return [int(t) for t in frame["time"].iloc[:count]]


class TestBatchWriter:

    def test_invalid_sizes(self, store):
        with pytest.raises(ValueError):
            BatchWriter(store, batch_size=0)
        with pytest.raises(ValueError):
            BatchWriter(store, pool_size=0)

    def test_updates_to_same_key_are_merged(self, loaded_store, ohlc_frame):
        t0 = times(ohlc_frame, 1)[0]
        writer = BatchWriter(loaded_store, batch_size=10, pool_size=2)

        writer.update({"time": t0, "pivot": 1})
        writer.update({"time": t0, "ref_value": 7.5})
        writer.update({"time": t0, "pivot": -1})

        assert writer.pending == 1
        writer.flush()

        bar = loaded_store.get(0)
        assert (bar["pivot"], bar["ref_value"]) == (-1, 7.5)
        assert writer.written == 1

    def test_flush_at_batch_size(self, loaded_store, ohlc_frame):
        writer = BatchWriter(loaded_store, batch_size=3, pool_size=2)
        for t in times(ohlc_frame, 3):
            writer.update({"time": t, "label": 1})

        assert writer.pending == 0
        assert writer.flushes == 1
        assert (loaded_store.load_bars(["label"])["label"].iloc[:3] == 1).all()

    def test_exit_flushes_remaining(self, loaded_store, ohlc_frame):
        with BatchWriter(loaded_store, batch_size=100, pool_size=4) as writer:
            for t in times(ohlc_frame, 10):
                writer.update({"time": t, "label_set": True})

        assert loaded_store.labeled_time_bounds() is not None
        assert writer.written == 10

    def test_exit_on_error_drops_pending(self, loaded_store, ohlc_frame):
        with pytest.raises(RuntimeError):
            with BatchWriter(loaded_store, batch_size=100) as writer:
                writer.update({"time": times(ohlc_frame, 1)[0], "label_set": True})
                raise RuntimeError("pass failed")

        assert loaded_store.labeled_time_bounds() is None

    def test_concurrent_inserts(self, store):
        rows = [{"time": t, "size": s, "norder": 0, "open": float(t)} for t in range(50) for s in (1, 2)]
        with BatchWriter(store, batch_size=40, pool_size=4) as writer:
            for row in rows:
                writer.insert("candles", row)

        assert store.count("candles") == 100
        assert writer.written == 100

    def test_insert_replaces_pending_update(self, store):
        writer = BatchWriter(store, batch_size=10)
        writer.update({"time": 1, "label": 1}, table="patterns")
        writer.insert("patterns", {"time": 1, "label": -1})

        assert writer.pending == 1
        writer.flush()
        assert store.load_patterns()["label"].tolist() == [-1]
