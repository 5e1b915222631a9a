"""
Geodetic localization of GPS tracks.

GPS fixes are angular (degrees of longitude/latitude) while visual odometry
positions are metric up to scale. Before registration the GPS track is moved
to a local, approximately metric frame centered on its own centroid:

    factor = (EARTH_RADIUS_M + mean_alt) * pi / 180
    x = (lon - mean_lon) * factor
    y = (lat - mean_lat) * factor
    z = alt

This is a first-order tangent-plane approximation: one scale factor for both
horizontal axes, no meridian convergence and no ellipsoid. It holds over the
short baselines of a single acquisition and is what the georeferenced point
cloud is later mapped back through, so both directions must use the same model.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple, TYPE_CHECKING

import numpy as np

from ..preprocessing.curve import Curve
from ..utils.errors import AlignmentError
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = setup_logger(__name__)

EARTH_RADIUS_M = 6378137.0


@dataclass(frozen=True)
class GeodeticFrame:
    """Local tangent-plane frame centered on a GPS track.

    Attributes:
        mean_lon: Mean longitude of the track (degrees)
        mean_lat: Mean latitude of the track (degrees)
        mean_alt: Mean altitude of the track (meters)
        factor: Meters per degree at the mean altitude

    Example:
        >>> frame = GeodeticFrame.from_points(np.array([[6.0, 46.0, 400.0], [6.001, 46.001, 410.0]]))
        >>> local = frame.localize(np.array([[6.001, 46.001, 410.0]]))
        >>> restored = frame.delocalize(local)  # -> [[6.001, 46.001, 410.0]]
    """

    mean_lon: float
    mean_lat: float
    mean_alt: float
    factor: float

    @classmethod
    def from_points(cls, points: "NDArray[np.floating]") -> "GeodeticFrame":
        """Compute the frame (centroid and metric factor) of an Nx3 lon/lat/alt array.

        Raises:
            AlignmentError: If points is empty or not Nx3
        """
        points = np.asarray(points, dtype=np.float64)
        if points.size == 0:
            raise AlignmentError("Cannot compute a geodetic frame from an empty GPS track")
        if points.ndim != 2 or points.shape[1] != 3:
            raise AlignmentError(f"Expected Nx3 array, got shape {points.shape}")

        mean = points.mean(axis=0)
        factor = (EARTH_RADIUS_M + float(mean[2])) * (math.pi / 180.0)
        return cls(
            mean_lon=float(mean[0]),
            mean_lat=float(mean[1]),
            mean_alt=float(mean[2]),
            factor=factor,
        )

    def localize(self, points: "NDArray[np.floating]") -> "NDArray[np.floating]":
        """Map lon/lat/alt points to the local metric frame (altitude unchanged)."""
        result = np.array(points, dtype=np.float64, copy=True)
        if result.size == 0:
            return result
        result[:, 0] = (result[:, 0] - self.mean_lon) * self.factor
        result[:, 1] = (result[:, 1] - self.mean_lat) * self.factor
        return result

    def delocalize(self, points: "NDArray[np.floating]") -> "NDArray[np.floating]":
        """Map local metric points back to lon/lat/alt (altitude unchanged)."""
        result = np.array(points, dtype=np.float64, copy=True)
        if result.size == 0:
            return result
        result[:, 0] = result[:, 0] / self.factor + self.mean_lon
        result[:, 1] = result[:, 1] / self.factor + self.mean_lat
        return result

    def to_dict(self) -> dict:
        return {
            "mean_lon": self.mean_lon,
            "mean_lat": self.mean_lat,
            "mean_alt": self.mean_alt,
            "factor": self.factor,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GeodeticFrame":
        return cls(
            mean_lon=float(data["mean_lon"]),
            mean_lat=float(data["mean_lat"]),
            mean_alt=float(data["mean_alt"]),
            factor=float(data["factor"]),
        )

    def __str__(self) -> str:
        return (
            f"GeodeticFrame(center=[{self.mean_lon:.8f}, {self.mean_lat:.8f}, {self.mean_alt:.3f}], "
            f"factor={self.factor:.4f} m/deg)"
        )


class GeodeticLocalizer:
    """Computes the frame of a GPS curve and expresses the curve in it."""

    def localize_curve(self, curve: Curve) -> Tuple[GeodeticFrame, np.ndarray]:
        """
        Localize a GPS curve around its centroid.

        Args:
            curve: GPS curve (longitude, latitude, altitude)

        Returns:
            (frame, Nx3 localized points). The curve itself is left untouched.
        """
        points = curve.to_array()
        frame = GeodeticFrame.from_points(points)
        logger.info(f"Localizing {len(points)} GPS points: {frame}")
        return frame, frame.localize(points)
