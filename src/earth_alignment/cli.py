"""
Command-line interface for point cloud georeferencing.

Usage:
    earth-align -p ROOT -r RIGS -i INPUT.ply -o OUTPUT.ply -c CAM_TAG -m CAM_MOD -g GPS_TAG -n GPS_MOD [-d DELAY]
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .pipeline.workflow import EarthAlignmentWorkflow
from .utils.config import AppConfig, load_config
from .utils.errors import EXIT_SUCCESS, EXIT_UNEXPECTED, EarthAlignmentError
from .utils.logging import set_package_level, setup_logger

logger = setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="earth-align",
        description="Align a visual odometry trajectory on its GPS track and georeference a PLY point cloud",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Georeference a reconstruction
    earth-align -p /data/csps -r /data/rigs -i cloud.ply -o cloud_wgs84.ply \\
        -c eyesis4pi -m mod-camera -g eyesis4pi -n mod-gps -d 0

    # Same, settings from YAML, also exporting the estimated transform
    earth-align --config config/default.yaml --save-transform transform.txt

Exit statuses:
    0 success, 1 unexpected error, 2 usage/configuration error,
    3 input/output error, 4 format error, 5 alignment error
'''
    )
    parser.add_argument('--path', '-p', dest='processing_root', help='Synchronized processing structure root directory')
    parser.add_argument('--rigs-path', '-r', dest='rigs_dir', help='Visual odometry rig records directory')
    parser.add_argument('--input-ply', '-i', dest='input_ply', help='Input PLY file')
    parser.add_argument('--output-ply', '-o', dest='output_ply', help='Output PLY file')
    parser.add_argument('--cam-tag', '-c', dest='camera_tag', help='Camera device tag')
    parser.add_argument('--cam-mod', '-m', dest='camera_module', help='Camera device module')
    parser.add_argument('--gps-tag', '-g', dest='gps_tag', help='GPS device tag')
    parser.add_argument('--gps-mod', '-n', dest='gps_module', help='GPS device module')
    parser.add_argument('--delay', '-d', type=int, default=None, help='Timestamp delay added to record timestamps')
    parser.add_argument('--trigger-tolerance', type=int, default=None,
                        help='Largest master timestamp distance (microseconds) accepted as a trigger match')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to YAML configuration file (defaults to config/default.yaml)')
    parser.add_argument('--save-transform', type=str, default=None, help='Write the estimated 4x4 transform to this file')
    parser.add_argument('--save-frame', type=str, default=None, help='Write the geodetic frame to this JSON file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output')
    return parser


def apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Overlay command line values onto the loaded configuration."""
    for name in ("processing_root", "rigs_dir", "input_ply", "output_ply"):
        value = getattr(args, name)
        if value is not None:
            setattr(cfg.paths, name, value)
    for name in ("camera_tag", "camera_module", "gps_tag", "gps_module"):
        value = getattr(args, name)
        if value is not None:
            setattr(cfg.synchronization, name, value)
    if args.delay is not None:
        cfg.synchronization.delay = args.delay
    if args.trigger_tolerance is not None:
        cfg.synchronization.trigger_tolerance_us = args.trigger_tolerance
    if args.save_transform is not None:
        cfg.outputs.save_transform = args.save_transform
    if args.save_frame is not None:
        cfg.outputs.save_frame = args.save_frame
    if args.verbose:
        cfg.logging.level = "DEBUG"
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()

    # No arguments: print usage and do nothing
    if not argv:
        parser.print_help()
        return EXIT_SUCCESS

    args = parser.parse_args(argv)

    try:
        cfg = apply_overrides(load_config(args.config, allow_missing=args.config is None), args)
        set_package_level(getattr(logging, cfg.logging.level.upper(), logging.INFO), cfg.logging.file)
        EarthAlignmentWorkflow(cfg).run()
    except EarthAlignmentError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return e.exit_code
    except Exception as e:
        logger.exception(f"Unexpected failure: {e}")
        return EXIT_UNEXPECTED

    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
