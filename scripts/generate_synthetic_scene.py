"""
Generate a synthetic acquisition for trying the workflow end to end.

Writes, under the output directory:
- rigs/<sec>_<usec>          visual odometry records (12 floats each)
- csps/<tag>/<module>/trigger.txt and position.txt synchronization tables
- cloud.ply                  ASCII point cloud in the visual odometry frame

The visual odometry frame is the localized GPS frame moved by a known
rotation and translation, so the georeferenced cloud should land back on the
GPS track neighbourhood it was sampled from.
"""

import argparse
import sys
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).parent.parent / "src"))

from earth_alignment.alignment.geodetic import EARTH_RADIUS_M
from earth_alignment.preprocessing.synchronization import compose_timestamp


def rotation_zyx(yaw: float, pitch: float, roll: float) -> np.ndarray:
    cy, sy = np.cos(yaw), np.sin(yaw)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cr, sr = np.cos(roll), np.sin(roll)
    Rz = np.array([[cy, -sy, 0], [sy, cy, 0], [0, 0, 1]])
    Ry = np.array([[cp, 0, sp], [0, 1, 0], [-sp, 0, cp]])
    Rx = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])
    return Rz @ Ry @ Rx


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic georeferencing scene")
    parser.add_argument("output_dir", type=str)
    parser.add_argument("--events", type=int, default=200)
    parser.add_argument("--points", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    out = Path(args.output_dir)
    rigs = out / "rigs"
    stream = out / "csps" / "eyesis" / "mod"
    rigs.mkdir(parents=True, exist_ok=True)
    stream.mkdir(parents=True, exist_ok=True)

    # GPS track: a gentle curve around Lausanne
    t = np.linspace(0.0, 1.0, args.events)
    lon = 6.6323 + 0.002 * t + 0.0005 * np.sin(6 * t)
    lat = 46.5197 + 0.001 * t ** 2
    alt = 420.0 + 5.0 * np.sin(3 * t)
    gps = np.column_stack([lon, lat, alt])

    mean = gps.mean(axis=0)
    factor = (EARTH_RADIUS_M + mean[2]) * np.pi / 180.0
    local = gps.copy()
    local[:, 0] = (gps[:, 0] - mean[0]) * factor
    local[:, 1] = (gps[:, 1] - mean[1]) * factor

    R = rotation_zyx(0.7, 0.05, -0.02)
    T = np.array([12.0, -4.0, 2.5])
    vo = local @ R.T + T

    base = 1_400_000_000
    with (stream / "trigger.txt").open("w") as ft, (stream / "position.txt").open("w") as fp:
        for i in range(args.events):
            sec, usec = base + i, 250_000
            master = compose_timestamp(sec, usec)
            synch = compose_timestamp(sec, usec + 1000)
            ft.write(f"{master} {synch}\n")
            fp.write(f"{synch} {gps[i, 0]:.12f} {gps[i, 1]:.12f} {gps[i, 2]:.6f}\n")
            record = list(rng.normal(size=9)) + list(vo[i])
            (rigs / f"{sec}_{usec}").write_text(" ".join(f"{v:.12f}" for v in record) + "\n")

    cloud_local = local[rng.integers(0, args.events, args.points)] + rng.normal(scale=2.0, size=(args.points, 3))
    cloud_vo = cloud_local @ R.T + T
    colors = rng.integers(0, 256, size=(args.points, 3))
    with (out / "cloud.ply").open("w") as f:
        f.write("ply\nformat ascii 1.0\n")
        f.write(f"element vertex {args.points}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write("property uchar red\nproperty uchar green\nproperty uchar blue\n")
        f.write("end_header\n")
        for p, c in zip(cloud_vo, colors):
            f.write(f"{p[0]:.9f} {p[1]:.9f} {p[2]:.9f} {c[0]} {c[1]} {c[2]}\n")

    print(f"Scene written to {out}")
    print(f"Run: earth-align -p {out / 'csps'} -r {rigs} -i {out / 'cloud.ply'} "
          f"-o {out / 'cloud_geo.ply'} -c eyesis -m mod -g eyesis -n mod")


if __name__ == "__main__":
    main()
