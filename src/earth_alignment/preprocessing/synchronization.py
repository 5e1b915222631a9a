"""
Time synchronization queries.

The alignment pipeline pairs each visual odometry event with a GPS fix by
asking a synchronization service two questions:

1. trigger query: which synchronized timestamp corresponds to a camera
   (master) timestamp?
2. position query: where was the GPS device at that synchronized timestamp?

The service is an external collaborator. This module defines the interface
the pipeline consumes, the timestamp encoding it shares with the service, and
``TableSynchronizationService``, a file-backed implementation reading plain
text tables from the processing root:

    <root>/<tag>/<module>/trigger.txt    master synch
    <root>/<tag>/<module>/position.txt   timestamp longitude latitude altitude

Timestamps are composed 64-bit integers: seconds in the high 32 bits and
microseconds in the low 32 bits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from bisect import bisect_left
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from ..utils.errors import InputPathError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

_LOW_BITS = 32
_LOW_MASK = (1 << _LOW_BITS) - 1


def compose_timestamp(seconds: int, microseconds: int) -> int:
    """Pack seconds and microseconds into one composed timestamp."""
    if seconds < 0 or microseconds < 0:
        raise ValueError(f"Timestamp parts must be non-negative, got {seconds}, {microseconds}")
    if microseconds > _LOW_MASK:
        raise ValueError(f"Sub-second part {microseconds} does not fit {_LOW_BITS} bits")
    return (int(seconds) << _LOW_BITS) | int(microseconds)


def decompose_timestamp(timestamp: int) -> Tuple[int, int]:
    """Split a composed timestamp into (seconds, microseconds)."""
    return int(timestamp) >> _LOW_BITS, int(timestamp) & _LOW_MASK


def timestamp_to_microseconds(timestamp: int) -> int:
    seconds, micro = decompose_timestamp(timestamp)
    return seconds * 1_000_000 + micro


def timestamp_to_seconds(timestamp: int) -> float:
    seconds, micro = decompose_timestamp(timestamp)
    return seconds + micro * 1e-6


@dataclass(frozen=True)
class TriggerMatch:
    """Result of a trigger query."""
    status: bool
    synch: int = 0


@dataclass(frozen=True)
class GeoPosition:
    """Result of a position query."""
    status: bool
    longitude: float = 0.0
    latitude: float = 0.0
    altitude: float = 0.0


class TriggerQuery(ABC):
    """Handle answering master timestamp -> synchronized timestamp queries."""

    @abstractmethod
    def query_by_master(self, timestamp: int) -> TriggerMatch:
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "TriggerQuery":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class PositionQuery(ABC):
    """Handle answering synchronized timestamp -> geodetic position queries."""

    @abstractmethod
    def query(self, timestamp: int) -> GeoPosition:
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "PositionQuery":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SynchronizationService(ABC):
    """Factory for query handles scoped to a processing root and a device stream."""

    @abstractmethod
    def open_trigger_query(self, root: str | Path, tag: str, module: str) -> TriggerQuery:
        ...

    @abstractmethod
    def open_position_query(self, root: str | Path, tag: str, module: str) -> PositionQuery:
        ...


# ------------------------ File-backed implementation ------------------------

def _read_table(path: Path, columns: int) -> List[List[str]]:
    if not path.is_file():
        raise InputPathError(f"Synchronization table not found: {path}")
    rows = []
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            fields = text.split()
            if len(fields) != columns:
                logger.warning(
                    f"{path.name}:{line_no}: expected {columns} fields, got {len(fields)}; line ignored"
                )
                continue
            rows.append(fields)
    return rows


class TableTriggerQuery(TriggerQuery):
    """Trigger lookup over a sorted table of (master, synch) timestamps."""

    def __init__(self, path: str | Path, *, tolerance_us: int = 0):
        self.path = Path(path)
        self.tolerance_us = int(tolerance_us)
        pairs = []
        for fields in _read_table(self.path, 2):
            try:
                pairs.append((int(fields[0]), int(fields[1])))
            except ValueError:
                logger.warning(f"{self.path.name}: non-integer timestamp in {fields}; line ignored")
        pairs.sort()
        self._masters = [m for m, _ in pairs]
        self._synchs = [s for _, s in pairs]
        logger.debug(f"Loaded {len(pairs)} trigger records from {self.path}")

    def query_by_master(self, timestamp: int) -> TriggerMatch:
        if not self._masters:
            return TriggerMatch(False)
        i = bisect_left(self._masters, timestamp)
        best = None
        for j in (i - 1, i):
            if 0 <= j < len(self._masters):
                dist = abs(self._masters[j] - timestamp)
                if best is None or dist < best[0]:
                    best = (dist, j)
        dist, j = best
        if dist == 0:
            return TriggerMatch(True, self._synchs[j])
        delta = abs(timestamp_to_microseconds(self._masters[j]) - timestamp_to_microseconds(timestamp))
        if delta <= self.tolerance_us:
            return TriggerMatch(True, self._synchs[j])
        return TriggerMatch(False)

    def close(self) -> None:
        self._masters = []
        self._synchs = []


class TablePositionQuery(PositionQuery):
    """Position lookup with linear interpolation between recorded GPS fixes."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        samples = []
        for fields in _read_table(self.path, 4):
            try:
                samples.append((int(fields[0]), float(fields[1]), float(fields[2]), float(fields[3])))
            except ValueError:
                logger.warning(f"{self.path.name}: malformed position record {fields}; line ignored")
        samples.sort(key=lambda s: s[0])
        self._times = [s[0] for s in samples]
        self._samples = samples
        logger.debug(f"Loaded {len(samples)} position records from {self.path}")

    def query(self, timestamp: int) -> GeoPosition:
        if not self._times:
            return GeoPosition(False)
        if timestamp < self._times[0] or timestamp > self._times[-1]:
            return GeoPosition(False)
        i = bisect_left(self._times, timestamp)
        if self._times[i] == timestamp:
            _, lon, lat, alt = self._samples[i]
            return GeoPosition(True, lon, lat, alt)
        t0, lon0, lat0, alt0 = self._samples[i - 1]
        t1, lon1, lat1, alt1 = self._samples[i]
        u0 = timestamp_to_microseconds(t0)
        span = timestamp_to_microseconds(t1) - u0
        # Sub-second parts of 1_000_000 or more can alias distinct timestamps
        if span <= 0:
            w = 0.0
        else:
            w = min(max((timestamp_to_microseconds(timestamp) - u0) / span, 0.0), 1.0)
        return GeoPosition(
            True,
            lon0 + w * (lon1 - lon0),
            lat0 + w * (lat1 - lat0),
            alt0 + w * (alt1 - alt0),
        )

    def close(self) -> None:
        self._times = []
        self._samples = []


class TableSynchronizationService(SynchronizationService):
    """Synchronization service reading trigger and position tables from disk."""

    TRIGGER_FILE = "trigger.txt"
    POSITION_FILE = "position.txt"

    def __init__(self, *, trigger_tolerance_us: int = 0):
        self.trigger_tolerance_us = int(trigger_tolerance_us)

    @staticmethod
    def stream_dir(root: str | Path, tag: str, module: str) -> Path:
        return Path(root) / tag / module

    def open_trigger_query(self, root: str | Path, tag: str, module: str) -> TableTriggerQuery:
        path = self.stream_dir(root, tag, module) / self.TRIGGER_FILE
        return TableTriggerQuery(path, tolerance_us=self.trigger_tolerance_us)

    def open_position_query(self, root: str | Path, tag: str, module: str) -> TablePositionQuery:
        path = self.stream_dir(root, tag, module) / self.POSITION_FILE
        return TablePositionQuery(path)
