"""
pivotlab
========
Zigzag pivots, directional labels and multi-resolution candle patterns
for price-direction model training.

Modules:
    - core: Average definitions, exceptions, candle shape features
    - config: Runtime settings and statistics configuration
    - data: SQLite bar store and batched concurrent writer
    - statistics: Sources, zigzag, labels, ranges, candles, patterns, export
    - pipeline: Stage wrappers and the statistics orchestrator
"""

__version__ = "0.1.0"
__author__ = "pivotlab team"
