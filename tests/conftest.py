"""
Shared fixtures: a small synthetic acquisition on disk.
"""

from dataclasses import dataclass
from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from earth_alignment.alignment.geodetic import GeodeticFrame
from earth_alignment.preprocessing.synchronization import compose_timestamp


@dataclass
class SyntheticScene:
    root: Path
    processing_root: Path
    rigs_dir: Path
    input_ply: Path
    output_ply: Path
    gps: np.ndarray
    cloud_geodetic: np.ndarray
    colors: np.ndarray
    rotation: np.ndarray
    translation: np.ndarray


@pytest.fixture
def synthetic_scene(tmp_path) -> SyntheticScene:
    """
    GPS track, matching visual odometry records and a colored PLY cloud.

    The visual odometry frame is the localized GPS frame moved by a known
    rotation and translation, so georeferencing the cloud must give back
    ``cloud_geodetic``.
    """
    rng = np.random.default_rng(42)
    n_events = 40

    t = np.linspace(0.0, 1.0, n_events)
    gps = np.column_stack([
        6.6323 + 0.002 * t + 0.0005 * np.sin(6 * t),
        46.5197 + 0.001 * t ** 2,
        420.0 + 5.0 * np.sin(3 * t),
    ])
    frame = GeodeticFrame.from_points(gps)
    local = frame.localize(gps)

    th = np.deg2rad(40.0)
    rotation = np.array([[np.cos(th), -np.sin(th), 0.0], [np.sin(th), np.cos(th), 0.0], [0.0, 0.0, 1.0]])
    translation = np.array([12.0, -4.0, 2.5])
    vo = local @ rotation.T + translation

    processing_root = tmp_path / "csps"
    stream = processing_root / "eyesis" / "mod"
    rigs_dir = tmp_path / "rigs"
    stream.mkdir(parents=True)
    rigs_dir.mkdir()

    base = 1_400_000_000
    triggers = []
    positions = []
    for i in range(n_events):
        sec, usec = base + i, 250_000
        synch = compose_timestamp(sec, usec + 1000)
        triggers.append(f"{compose_timestamp(sec, usec)} {synch}")
        positions.append(f"{synch} {float(gps[i, 0])!r} {float(gps[i, 1])!r} {float(gps[i, 2])!r}")
        record = [0.0] * 9 + [float(v) for v in vo[i]]
        (rigs_dir / f"{sec}_{usec}").write_text(" ".join(repr(v) for v in record) + "\n")
    (stream / "trigger.txt").write_text("\n".join(triggers) + "\n")
    (stream / "position.txt").write_text("\n".join(positions) + "\n")

    n_points = 120
    cloud_local = local[rng.integers(0, n_events, n_points)] + rng.normal(scale=2.0, size=(n_points, 3))
    cloud_vo = cloud_local @ rotation.T + translation
    colors = rng.integers(0, 256, size=(n_points, 3))
    input_ply = tmp_path / "cloud.ply"
    lines = [
        "ply",
        "format ascii 1.0",
        f"element vertex {n_points}",
        "property double x",
        "property double y",
        "property double z",
        "property uchar red",
        "property uchar green",
        "property uchar blue",
        "end_header",
    ]
    for p, c in zip(cloud_vo, colors):
        lines.append(f"{float(p[0])!r} {float(p[1])!r} {float(p[2])!r} {c[0]} {c[1]} {c[2]}")
    input_ply.write_text("\n".join(lines) + "\n")

    return SyntheticScene(
        root=tmp_path,
        processing_root=processing_root,
        rigs_dir=rigs_dir,
        input_ply=input_ply,
        output_ply=tmp_path / "cloud_geo.ply",
        gps=gps,
        cloud_geodetic=frame.delocalize(cloud_local),
        colors=colors,
        rotation=rotation,
        translation=translation,
    )


@pytest.fixture
def read_ply_vertices():
    """Reader returning the vertex rows of an ASCII PLY file as a float array."""
    def _read(path: Path) -> np.ndarray:
        lines = path.read_text().splitlines()
        start = lines.index("end_header") + 1
        return np.array([[float(v) for v in line.split()] for line in lines[start:]])
    return _read
