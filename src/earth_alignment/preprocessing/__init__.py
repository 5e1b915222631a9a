"""
Preprocessing Module

This module builds the correspondence curves the alignment works on:
- Growable point curves
- Time synchronization queries (interface and file-backed tables)
- Visual odometry record discovery and GPS pairing
"""

from .curve import Curve, Point3
from .synchronization import (
    SynchronizationService,
    TriggerQuery,
    PositionQuery,
    TriggerMatch,
    GeoPosition,
    TableSynchronizationService,
    compose_timestamp,
    decompose_timestamp,
)
from .trajectory_builder import (
    TrajectoryBuilder,
    StreamSelector,
    CorrespondenceCurves,
    BuildStatistics,
    parse_record,
    parse_record_name,
)

__all__ = [
    "Curve",
    "Point3",
    "SynchronizationService",
    "TriggerQuery",
    "PositionQuery",
    "TriggerMatch",
    "GeoPosition",
    "TableSynchronizationService",
    "compose_timestamp",
    "decompose_timestamp",
    "TrajectoryBuilder",
    "StreamSelector",
    "CorrespondenceCurves",
    "BuildStatistics",
    "parse_record",
    "parse_record_name",
]
