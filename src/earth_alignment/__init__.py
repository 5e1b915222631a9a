"""
Earth Alignment Package

A Python package for georeferencing visual odometry reconstructions.
The visual odometry camera trajectory is paired with the GPS track of the same
acquisition through a time synchronization service, the GPS track is moved to
a local metric frame, the rigid transform between the two curves is estimated
with an SVD (Kabsch) registration, and the estimated transform is streamed
over an ASCII PLY point cloud to express it in longitude/latitude/altitude.
"""

__version__ = "0.1.0"

from .preprocessing import *
from .alignment import *
from .pipeline import *
from .utils import *

__all__ = [
    "preprocessing",
    "alignment",
    "pipeline",
    "utils",
]
