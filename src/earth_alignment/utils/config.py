"""
Configuration management for earth-alignment.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml

from .errors import ConfigurationError


# -----------------------
# Typed config structures
# -----------------------


class PathsConfig(BaseModel):
    processing_root: Optional[str] = Field(default=None, description="Root of the synchronized processing structure")
    rigs_dir: Optional[str] = Field(default=None, description="Directory of visual odometry rig records")
    input_ply: Optional[str] = Field(default=None, description="Point cloud to georeference (ASCII PLY)")
    output_ply: Optional[str] = Field(default=None, description="Georeferenced point cloud output path")


class SynchronizationConfig(BaseModel):
    camera_tag: Optional[str] = Field(default=None)
    camera_module: Optional[str] = Field(default=None)
    gps_tag: Optional[str] = Field(default=None)
    gps_module: Optional[str] = Field(default=None)
    delay: int = Field(default=0, description="Correction added to record timestamps (seconds)")
    trigger_tolerance_us: int = Field(
        default=0,
        ge=0,
        description="Largest master timestamp distance (microseconds) accepted as a trigger match",
    )


class AlignmentConfig(BaseModel):
    svd_backend: Literal["numpy", "scipy"] = Field(default="numpy")
    min_correspondences: int = Field(default=3, ge=3)
    degeneracy_tolerance: float = Field(
        default=1e-12,
        ge=0.0,
        description="Relative singular value threshold below which correspondences are collinear",
    )


class TransformConfig(BaseModel):
    chunk_rows: int = Field(default=100_000, gt=0, description="Vertex rows transformed per batch")
    coordinate_precision: int = Field(default=16, ge=0, le=32)


class OutputsConfig(BaseModel):
    save_transform: Optional[str] = Field(default=None, description="Write the 4x4 rigid transform to this text file")
    save_frame: Optional[str] = Field(default=None, description="Write the geodetic frame to this JSON file")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    paths: PathsConfig = Field(default_factory=PathsConfig)
    synchronization: SynchronizationConfig = Field(default_factory=SynchronizationConfig)
    alignment: AlignmentConfig = Field(default_factory=AlignmentConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def missing_required(self) -> list[str]:
        """Names of the settings a full run needs but which are unset."""
        required = {
            "paths.processing_root": self.paths.processing_root,
            "paths.rigs_dir": self.paths.rigs_dir,
            "paths.input_ply": self.paths.input_ply,
            "paths.output_ply": self.paths.output_ply,
            "synchronization.camera_tag": self.synchronization.camera_tag,
            "synchronization.camera_module": self.synchronization.camera_module,
            "synchronization.gps_tag": self.synchronization.gps_tag,
            "synchronization.gps_module": self.synchronization.gps_module,
        }
        return [name for name, value in required.items() if not value]


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/earth_alignment/utils/config.py
    parents sequence:
      0 -> .../src/earth_alignment/utils
      1 -> .../src/earth_alignment
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise ConfigurationError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            raw: Dict[str, Any] = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Unreadable YAML in {cfg_path}: {e}") from e

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ConfigurationError(f"Invalid configuration in {cfg_path}: {e}") from e
