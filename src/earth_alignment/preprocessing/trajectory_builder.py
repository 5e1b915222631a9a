"""
Trajectory Correspondence Builder

Builds the two paired curves the rigid registration works on:

- source: visual odometry camera positions, read from one record file per
  camera event in the rig directory
- reference: GPS positions of the same events, obtained from the
  synchronization service

Rig directory layout:

rigs/
├── 1401234567_000125     <- <timestamp>_<subcounter>
├── 1401234567_500214
└── ...

Each record holds exactly 12 whitespace-separated floats; the last three are
the event's visual odometry position. Records that cannot be decoded, or whose
event has no synchronized GPS fix, are skipped.
"""

from __future__ import annotations

import re
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .curve import Curve, Point3
from .synchronization import SynchronizationService, compose_timestamp
from ..utils.errors import InputPathError, RecordParseError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

RECORD_FIELDS = 12

_RECORD_NAME = re.compile(r"^(\d+)_(\d+)")


def parse_record_name(name: str) -> Tuple[int, int]:
    """
    Decode ``<timestamp>_<subcounter>`` from a record file name.

    Text following the sub-counter (an extension, for instance) is ignored.

    Raises:
        RecordParseError: If the name does not start with two underscore-separated integers
    """
    match = _RECORD_NAME.match(name)
    if match is None:
        raise RecordParseError(f"Record name '{name}' is not <timestamp>_<subcounter>")
    return int(match.group(1)), int(match.group(2))


def parse_record(text: str) -> Point3:
    """
    Decode a rig record and return its visual odometry position.

    Raises:
        RecordParseError: If the text is not exactly 12 floating-point fields
    """
    fields = text.split()
    if len(fields) != RECORD_FIELDS:
        raise RecordParseError(f"Expected {RECORD_FIELDS} fields, got {len(fields)}")
    try:
        values = [float(v) for v in fields]
    except ValueError as e:
        raise RecordParseError(f"Non-numeric record field: {e}") from e
    return Point3(values[-3], values[-2], values[-1])


@dataclass
class StreamSelector:
    """Device stream used for one side of the synchronization."""
    tag: str
    module: str


@dataclass
class BuildStatistics:
    files_scanned: int = 0
    rejected_records: int = 0
    unmatched_triggers: int = 0
    missing_positions: int = 0
    accepted: int = 0


@dataclass
class CorrespondenceCurves:
    """Paired curves: index i of ``source`` and ``reference`` is the same event."""
    source: Curve
    reference: Curve
    stats: BuildStatistics = field(default_factory=BuildStatistics)

    def __post_init__(self):
        if len(self.source) != len(self.reference):
            raise ValueError(
                f"Correspondence curves differ in length: {len(self.source)} vs {len(self.reference)}"
            )

    def __len__(self) -> int:
        return len(self.source)


class TrajectoryBuilder:
    """
    Pairs visual odometry positions with synchronized GPS positions.

    Args:
        rigs_dir: Directory of visual odometry records
        processing_root: Root of the synchronized processing structure
        service: Synchronization service answering trigger and position queries
        camera: Camera stream (trigger queries)
        gps: GPS stream (position queries)
        delay: Correction added to the timestamp encoded in each record name
    """

    def __init__(self, rigs_dir: str | Path, processing_root: str | Path,
                 service: SynchronizationService, camera: StreamSelector,
                 gps: StreamSelector, *, delay: int = 0):
        self.rigs_dir = Path(rigs_dir)
        self.processing_root = Path(processing_root)
        self.service = service
        self.camera = camera
        self.gps = gps
        self.delay = int(delay)

    def record_files(self) -> List[Path]:
        """List candidate record files (directories excluded) in name order."""
        if not self.rigs_dir.is_dir():
            raise InputPathError(f"Rig directory {self.rigs_dir} does not exist or is not a directory")
        try:
            entries = sorted(self.rigs_dir.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise InputPathError(f"Unable to enumerate {self.rigs_dir}: {e}") from e
        return [p for p in entries if p.is_file()]

    def master_timestamp(self, path: Path) -> Optional[int]:
        """Composed master timestamp of a record, or None when its name is unusable."""
        try:
            seconds, subcounter = parse_record_name(path.name)
            return compose_timestamp(seconds + self.delay, subcounter)
        except (RecordParseError, ValueError) as e:
            logger.debug(f"Skipping {path.name}: {e}")
            return None

    def build(self) -> CorrespondenceCurves:
        """
        Scan the rig directory and accumulate both correspondence curves.

        Query handles are opened once for the whole scan and closed afterwards.

        Returns:
            CorrespondenceCurves with equal-length source and reference curves

        Raises:
            InputPathError: If the rig directory or the synchronization tables are missing
        """
        files = self.record_files()
        source = Curve()
        reference = Curve()
        stats = BuildStatistics()

        logger.info(f"Scanning {len(files)} record files in {self.rigs_dir}")

        with ExitStack() as stack:
            trigger = stack.enter_context(
                self.service.open_trigger_query(self.processing_root, self.camera.tag, self.camera.module)
            )
            position = stack.enter_context(
                self.service.open_position_query(self.processing_root, self.gps.tag, self.gps.module)
            )

            for path in files:
                stats.files_scanned += 1
                try:
                    vo_point = parse_record(path.read_text(encoding="utf-8"))
                except (RecordParseError, UnicodeDecodeError) as e:
                    logger.debug(f"Skipping {path.name}: {e}")
                    stats.rejected_records += 1
                    continue
                except OSError as e:
                    logger.warning(f"Unable to read {path.name}: {e}")
                    stats.rejected_records += 1
                    continue

                master = self.master_timestamp(path)
                if master is None:
                    stats.rejected_records += 1
                    continue

                match = trigger.query_by_master(master)
                if not match.status:
                    stats.unmatched_triggers += 1
                    continue

                fix = position.query(match.synch)
                if not fix.status:
                    stats.missing_positions += 1
                    continue

                source.push_point(vo_point)
                reference.push(fix.longitude, fix.latitude, fix.altitude)
                stats.accepted += 1

        logger.info(
            f"Correspondences: {stats.accepted} accepted, {stats.rejected_records} rejected records, "
            f"{stats.unmatched_triggers} unmatched triggers, {stats.missing_positions} missing positions"
        )
        return CorrespondenceCurves(source=source, reference=reference, stats=stats)
