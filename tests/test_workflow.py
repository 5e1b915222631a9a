"""
End-to-end tests of the georeferencing workflow on a synthetic acquisition.
"""

import json

import numpy as np
import pytest

from earth_alignment.alignment.rigid_registration import load_transform_matrix
from earth_alignment.pipeline.workflow import EarthAlignmentWorkflow
from earth_alignment.utils.config import AppConfig
from earth_alignment.utils.errors import AlignmentError, ConfigurationError, InputPathError


def _config(scene, **outputs) -> AppConfig:
    cfg = AppConfig()
    cfg.paths.processing_root = str(scene.processing_root)
    cfg.paths.rigs_dir = str(scene.rigs_dir)
    cfg.paths.input_ply = str(scene.input_ply)
    cfg.paths.output_ply = str(scene.output_ply)
    cfg.synchronization.camera_tag = "eyesis"
    cfg.synchronization.camera_module = "mod"
    cfg.synchronization.gps_tag = "eyesis"
    cfg.synchronization.gps_module = "mod"
    for key, value in outputs.items():
        setattr(cfg.outputs, key, value)
    return cfg


def test_workflow_georeferences_cloud(synthetic_scene, read_ply_vertices):
    result = EarthAlignmentWorkflow(_config(synthetic_scene)).run()

    assert len(result.curves) == 40
    np.testing.assert_allclose(result.alignment.transform.rotation, synthetic_scene.rotation, atol=1e-9)
    np.testing.assert_allclose(result.alignment.transform.translation, synthetic_scene.translation, atol=1e-7)
    assert result.report.rows == len(synthetic_scene.cloud_geodetic)

    out = read_ply_vertices(synthetic_scene.output_ply)
    np.testing.assert_allclose(out[:, 0:2], synthetic_scene.cloud_geodetic[:, 0:2], rtol=0, atol=1e-10)
    np.testing.assert_allclose(out[:, 2], synthetic_scene.cloud_geodetic[:, 2], rtol=0, atol=1e-6)
    np.testing.assert_array_equal(out[:, 3:], synthetic_scene.colors)


def test_workflow_saves_transform_and_frame(synthetic_scene):
    transform_path = synthetic_scene.root / "out" / "transform.txt"
    frame_path = synthetic_scene.root / "out" / "frame.json"
    cfg = _config(synthetic_scene, save_transform=str(transform_path), save_frame=str(frame_path))

    result = EarthAlignmentWorkflow(cfg).run()

    loaded = load_transform_matrix(transform_path)
    np.testing.assert_allclose(loaded.rotation, result.alignment.transform.rotation, atol=1e-15)
    frame = json.loads(frame_path.read_text())
    assert frame["factor"] == pytest.approx(result.frame.factor)
    assert frame["mean_lon"] == pytest.approx(synthetic_scene.gps[:, 0].mean())


def test_workflow_with_scipy_backend(synthetic_scene):
    cfg = _config(synthetic_scene)
    cfg.alignment.svd_backend = "scipy"

    result = EarthAlignmentWorkflow(cfg).run()

    assert result.alignment.transform.determinant == pytest.approx(1.0)


def test_missing_settings_rejected():
    with pytest.raises(ConfigurationError, match="paths.rigs_dir"):
        EarthAlignmentWorkflow(AppConfig())


def test_no_correspondences(synthetic_scene):
    cfg = _config(synthetic_scene)
    cfg.synchronization.delay = 10_000

    with pytest.raises(AlignmentError, match="No synchronized correspondences"):
        EarthAlignmentWorkflow(cfg).run()
    assert not synthetic_scene.output_ply.exists()


def test_too_few_correspondences(synthetic_scene):
    for path in sorted(synthetic_scene.rigs_dir.iterdir())[2:]:
        path.unlink()

    with pytest.raises(AlignmentError, match="Not enough"):
        EarthAlignmentWorkflow(_config(synthetic_scene)).run()


def test_missing_synchronization_tables(synthetic_scene):
    cfg = _config(synthetic_scene)
    cfg.synchronization.gps_tag = "unknown"

    with pytest.raises(InputPathError):
        EarthAlignmentWorkflow(cfg).run()
