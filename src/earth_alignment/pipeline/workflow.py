"""
Earth alignment workflow.

Runs the four stages once, each on the previous stage's output:

    TrajectoryBuilder -> GeodeticLocalizer -> RigidAligner -> PointCloudTransformer
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..alignment.geodetic import GeodeticFrame, GeodeticLocalizer
from ..alignment.ply_transform import PointCloudTransformer, TransformReport
from ..alignment.rigid_registration import AlignmentResult, RigidAligner, save_transform_matrix
from ..preprocessing.synchronization import SynchronizationService, TableSynchronizationService
from ..preprocessing.trajectory_builder import CorrespondenceCurves, StreamSelector, TrajectoryBuilder
from ..utils.config import AppConfig
from ..utils.errors import AlignmentError, ConfigurationError, OutputPathError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class WorkflowResult:
    curves: CorrespondenceCurves
    frame: GeodeticFrame
    alignment: AlignmentResult
    report: TransformReport


class EarthAlignmentWorkflow:
    """
    Georeferences a visual odometry point cloud from a configuration.

    Args:
        cfg: Application configuration; all path and stream settings must be set
        service: Synchronization service (defaults to the file-backed tables)
    """

    def __init__(self, cfg: AppConfig, service: Optional[SynchronizationService] = None):
        missing = cfg.missing_required()
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
        self.cfg = cfg
        self.service = service if service is not None else TableSynchronizationService(
            trigger_tolerance_us=cfg.synchronization.trigger_tolerance_us
        )

    def build_curves(self) -> CorrespondenceCurves:
        sync = self.cfg.synchronization
        builder = TrajectoryBuilder(
            self.cfg.paths.rigs_dir,
            self.cfg.paths.processing_root,
            self.service,
            StreamSelector(sync.camera_tag, sync.camera_module),
            StreamSelector(sync.gps_tag, sync.gps_module),
            delay=sync.delay,
        )
        return builder.build()

    def run(self) -> WorkflowResult:
        logger.info("Earth Alignment Workflow")
        logger.info("========================")

        # Step 1: correspondence curves
        curves = self.build_curves()
        if len(curves) == 0:
            raise AlignmentError("No synchronized correspondences found; nothing to align")

        # Step 2: geodetic localization of the GPS track
        frame, reference = GeodeticLocalizer().localize_curve(curves.reference)

        # Step 3: rigid registration of visual odometry on the localized track
        aligner = RigidAligner(
            svd_backend=self.cfg.alignment.svd_backend,
            min_correspondences=self.cfg.alignment.min_correspondences,
            degeneracy_tolerance=self.cfg.alignment.degeneracy_tolerance,
        )
        alignment = aligner.align(reference, curves.source.to_array())
        self._save_outputs(frame, alignment)

        # Step 4: point cloud georeferencing
        transformer = PointCloudTransformer(
            alignment.transform,
            frame,
            chunk_rows=self.cfg.transform.chunk_rows,
            precision=self.cfg.transform.coordinate_precision,
        )
        report = transformer.transform_file(self.cfg.paths.input_ply, self.cfg.paths.output_ply)

        logger.info("Workflow complete")
        return WorkflowResult(curves=curves, frame=frame, alignment=alignment, report=report)

    def _save_outputs(self, frame: GeodeticFrame, alignment: AlignmentResult) -> None:
        outputs = self.cfg.outputs
        try:
            if outputs.save_transform:
                save_transform_matrix(alignment.transform, outputs.save_transform)
            if outputs.save_frame:
                path = Path(outputs.save_frame)
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("w", encoding="utf-8") as f:
                    json.dump(frame.to_dict(), f, indent=2)
                logger.info(f"Saved geodetic frame to {path}")
        except OSError as e:
            raise OutputPathError(f"Unable to write alignment outputs: {e}") from e
