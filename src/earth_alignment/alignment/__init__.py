"""
Spatial Alignment Module

This module provides the registration of a visual odometry trajectory on a
GPS track and the application of the result to point cloud files:
- Geodetic localization of the GPS track
- Rigid registration (SVD / Kabsch) of the paired curves
- Streaming georeferencing of ASCII PLY point clouds
"""

from .geodetic import GeodeticFrame, GeodeticLocalizer, EARTH_RADIUS_M
from .rigid_registration import (
    RigidAligner,
    RigidTransform,
    AlignmentResult,
    save_transform_matrix,
    load_transform_matrix,
)
from .ply_transform import (
    PointCloudTransformer,
    TransformReport,
    PlyHeader,
    HeaderLineKind,
    classify_header_line,
    read_header,
    iter_rows,
)

__all__ = [
    "GeodeticFrame",
    "GeodeticLocalizer",
    "EARTH_RADIUS_M",
    "RigidAligner",
    "RigidTransform",
    "AlignmentResult",
    "save_transform_matrix",
    "load_transform_matrix",
    "PointCloudTransformer",
    "TransformReport",
    "PlyHeader",
    "HeaderLineKind",
    "classify_header_line",
    "read_header",
    "iter_rows",
]
