"""
Output management module.

This module persists what a simulation run produces:
    - Result records (best strategy per symbol, sorted by win rate)
    - The progress checkpoint used to resume an interrupted run

Directory Structure:
    outputs/
    ├── data/                           # Cached bars (managed by DataManager)
    │   └── {SYMBOL}/
    └── results/
        ├── backtest_results.json       # JsonResultStore
        └── progress.json               # JsonCheckpointStore

Example:
    from outputs import JsonResultStore, JsonCheckpointStore

    results = JsonResultStore()
    results.upsert(record)

    checkpoints = JsonCheckpointStore()
    checkpoint = checkpoints.load()
"""

from .manager import (
    CheckpointStore,
    JsonCheckpointStore,
    JsonResultStore,
    ResultStore,
    sort_results,
)

__all__ = [
    'ResultStore',
    'JsonResultStore',
    'CheckpointStore',
    'JsonCheckpointStore',
    'sort_results',
]
