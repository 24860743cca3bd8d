"""
Result and checkpoint persistence.

This module provides:
    - ResultStore / JsonResultStore: best-strategy record per symbol
    - CheckpointStore / JsonCheckpointStore: pipeline resumability state

Both JSON stores rewrite the whole file on every save. The new content is
written to a temporary file in the same directory and moved into place
with os.replace, so readers never see a half-written file.

Directory Structure:
    outputs/results/
    ├── backtest_results.json    # list of result records, best win rate first
    └── progress.json            # progress checkpoint

Example:
    from outputs import JsonResultStore

    store = JsonResultStore('outputs/results/backtest_results.json')
    store.upsert(record)
    best = store.load()[0]
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.errors import ConfigurationError
from core.models import ProgressCheckpoint, ResultRecord

logger = logging.getLogger(__name__)


def _write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(payload, f, indent=2, default=str)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class ResultStore(ABC):
    """
    Collection of result records keyed by symbol.
    """

    @abstractmethod
    def load(self) -> List[ResultRecord]:
        """All records, sorted by win rate descending."""
        pass

    @abstractmethod
    def save(self, records: List[ResultRecord]) -> None:
        """Replace the whole collection."""
        pass

    def upsert(self, record: ResultRecord) -> List[ResultRecord]:
        """
        Insert or replace the record for record.symbol.

        Returns:
            The updated collection, sorted by win rate descending
        """
        records = [r for r in self.load() if r.symbol != record.symbol]
        records.append(record)
        records = sort_results(records)
        self.save(records)
        return records

    def get(self, symbol: str) -> Optional[ResultRecord]:
        for record in self.load():
            if record.symbol == symbol:
                return record
        return None

    def symbols(self) -> List[str]:
        return [r.symbol for r in self.load()]


def sort_results(records: List[ResultRecord]) -> List[ResultRecord]:
    """Sort by win rate descending; ties keep their existing order."""
    return sorted(records, key=lambda r: r.win_rate, reverse=True)


class JsonResultStore(ResultStore):
    """
    Result records in a single JSON array.

    Attributes:
        path: JSON file location
    """

    def __init__(self, path: Union[str, Path] = 'outputs/results/backtest_results.json'):
        self.path = Path(path)

    def load(self) -> List[ResultRecord]:
        """
        Read the result file.

        Returns:
            Records sorted by win rate (empty if the file does not exist)

        Raises:
            ConfigurationError: If the file exists but is not a valid result list
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path) as f:
                data = json.load(f)
            records = [ResultRecord.from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Result file {self.path} is unreadable: {e}") from e
        return sort_results(records)

    def save(self, records: List[ResultRecord]) -> None:
        _write_json_atomic(self.path, [r.to_dict() for r in sort_results(records)])
        logger.debug(f"Wrote {len(records)} result records to {self.path}")


class CheckpointStore(ABC):
    """Persistence for the pipeline progress checkpoint."""

    @abstractmethod
    def load(self) -> ProgressCheckpoint:
        pass

    @abstractmethod
    def save(self, checkpoint: ProgressCheckpoint) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class JsonCheckpointStore(CheckpointStore):
    """
    Progress checkpoint in a JSON object.

    An unreadable file is treated as "no progress": the run starts over
    rather than skipping symbols it cannot prove were processed.
    """

    def __init__(self, path: Union[str, Path] = 'outputs/results/progress.json'):
        self.path = Path(path)

    def load(self) -> ProgressCheckpoint:
        if not self.path.exists():
            return ProgressCheckpoint()
        try:
            with open(self.path) as f:
                data: Dict[str, Any] = json.load(f)
            checkpoint = ProgressCheckpoint.from_dict(data)
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {self.path}: {e}")
            return ProgressCheckpoint()
        logger.info(
            f"Loaded checkpoint: last symbol {checkpoint.last_symbol}, "
            f"{len(checkpoint.completed_symbols)} completed"
        )
        return checkpoint

    def save(self, checkpoint: ProgressCheckpoint) -> None:
        _write_json_atomic(self.path, checkpoint.to_dict())

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed checkpoint {self.path}")
