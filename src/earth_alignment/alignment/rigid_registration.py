"""
Rigid Registration of Correspondence Curves

Estimates the rotation and translation relating two paired point sets with the
SVD solution of the orthogonal Procrustes problem (Kabsch method):

1. center both sets on their centroids
2. H = sum over pairs of (ref - mean_ref)(src - mean_src)^T
3. H = U S V^T
4. R = V U^T, with the last column of V negated when det(R) < 0
5. T = mean_src - R mean_ref

The estimated pair satisfies src ~ R ref + T. The point cloud stage maps
visual odometry coordinates into the reference frame with the inverse,
ref = R^T (src - T); see ``RigidTransform.to_reference``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Tuple, Union

import numpy as np

from ..utils.errors import AlignmentError, InputPathError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

SVDResult = Tuple[np.ndarray, np.ndarray, np.ndarray]
SVDFunction = Callable[[np.ndarray], SVDResult]


# ------------------------ SVD backends ------------------------

def svd_numpy(matrix: np.ndarray) -> SVDResult:
    """3x3 SVD through numpy.linalg (returns U, S, V^T)."""
    return np.linalg.svd(matrix)


def svd_scipy(matrix: np.ndarray) -> SVDResult:
    """3x3 SVD through the LAPACK gesvd driver of scipy.linalg (returns U, S, V^T)."""
    from scipy.linalg import svd
    return svd(matrix, full_matrices=True, lapack_driver="gesvd", check_finite=True)


SVD_BACKENDS: Dict[str, SVDFunction] = {
    "numpy": svd_numpy,
    "scipy": svd_scipy,
}


# ------------------------ Transform ------------------------

@dataclass(frozen=True, eq=False)
class RigidTransform:
    """Rotation and translation with src = R ref + T.

    Attributes:
        rotation: 3x3 proper rotation matrix
        translation: 3-vector
    """

    rotation: np.ndarray
    translation: np.ndarray

    def __post_init__(self):
        R = np.array(self.rotation, dtype=np.float64)
        t = np.array(self.translation, dtype=np.float64).reshape(-1)
        if R.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {R.shape}")
        if t.shape != (3,):
            raise ValueError(f"Translation must have 3 components, got {t.shape}")
        R.setflags(write=False)
        t.setflags(write=False)
        object.__setattr__(self, "rotation", R)
        object.__setattr__(self, "translation", t)

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(np.eye(3), np.zeros(3))

    @property
    def determinant(self) -> float:
        return float(np.linalg.det(self.rotation))

    def to_reference(self, points: np.ndarray) -> np.ndarray:
        """Map Nx3 source-frame points to the reference frame: R^T (p - T)."""
        points = np.asarray(points, dtype=np.float64)
        # Row vectors: (R^T (p - T))^T = (p - T)^T R
        return (points - self.translation) @ self.rotation

    def to_source(self, points: np.ndarray) -> np.ndarray:
        """Map Nx3 reference-frame points to the source frame: R p + T."""
        points = np.asarray(points, dtype=np.float64)
        return points @ self.rotation.T + self.translation

    def residuals(self, reference: np.ndarray, source: np.ndarray) -> np.ndarray:
        """Distance between each reference point and its mapped source point."""
        diff = self.to_reference(source) - np.asarray(reference, dtype=np.float64)
        return np.linalg.norm(diff, axis=1)

    def as_matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix mapping reference to source coordinates."""
        T = np.eye(4)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    @classmethod
    def from_matrix(cls, matrix: np.ndarray, *, atol: float = 1e-6) -> "RigidTransform":
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected 4x4 matrix, got shape {matrix.shape}")
        R = matrix[:3, :3]
        if not np.allclose(R.T @ R, np.eye(3), atol=atol) or np.linalg.det(R) < 0:
            raise ValueError("Matrix rotation block is not a proper rotation")
        return cls(R, matrix[:3, 3])


@dataclass(frozen=True, eq=False)
class AlignmentResult:
    transform: RigidTransform
    singular_values: np.ndarray
    n_correspondences: int
    reflection_corrected: bool
    rmse: float


# ------------------------ Aligner ------------------------

@dataclass
class RigidAligner:
    """Least-squares rigid registration of paired curves.

    Args:
        svd_backend: "numpy", "scipy" or a callable returning (U, S, V^T)
        min_correspondences: Fewest pairs accepted (at least 3)
        degeneracy_tolerance: Second singular value, relative to the first,
            below which the pairs are treated as collinear
    """

    svd_backend: Union[str, SVDFunction] = "numpy"
    min_correspondences: int = 3
    degeneracy_tolerance: float = 1e-12
    _svd: SVDFunction = field(init=False, repr=False)

    def __post_init__(self):
        if self.min_correspondences < 3:
            raise ValueError("At least 3 correspondences are needed for a rigid registration")
        if callable(self.svd_backend):
            self._svd = self.svd_backend
        else:
            try:
                self._svd = SVD_BACKENDS[self.svd_backend.lower()]
            except KeyError:
                raise ValueError(
                    f"Unknown SVD backend '{self.svd_backend}', expected one of {sorted(SVD_BACKENDS)}"
                ) from None

    def align(self, reference: np.ndarray, source: np.ndarray) -> AlignmentResult:
        """
        Estimate R, T with source ~ R reference + T.

        Args:
            reference: Nx3 reference points (localized GPS track)
            source: Nx3 source points (visual odometry track), paired by index

        Returns:
            AlignmentResult holding the transform and fit diagnostics

        Raises:
            AlignmentError: On mismatched or too few pairs, non-finite input,
                decomposition failure or degenerate (collinear) pairs
        """
        ref = self._validate(reference, "reference")
        src = self._validate(source, "source")
        if len(ref) != len(src):
            raise AlignmentError(
                f"Correspondence count mismatch: {len(ref)} reference vs {len(src)} source points"
            )
        n = len(ref)
        if n < self.min_correspondences:
            raise AlignmentError(
                f"Not enough correspondences for rigid registration: {n} < {self.min_correspondences}"
            )

        c_ref = ref.mean(axis=0)
        c_src = src.mean(axis=0)
        A = ref - c_ref
        B = src - c_src
        H = A.T @ B

        try:
            U, S, Vt = self._svd(H)
        except np.linalg.LinAlgError as e:
            raise AlignmentError(f"SVD of the cross-covariance matrix failed: {e}") from e
        except ValueError as e:
            raise AlignmentError(f"SVD rejected the cross-covariance matrix: {e}") from e

        U = np.asarray(U, dtype=np.float64)
        S = np.asarray(S, dtype=np.float64)
        V = np.asarray(Vt, dtype=np.float64).T.copy()
        if not (np.all(np.isfinite(U)) and np.all(np.isfinite(S)) and np.all(np.isfinite(V))):
            raise AlignmentError("SVD returned non-finite factors")

        if S[0] <= 0.0 or S[1] <= self.degeneracy_tolerance * S[0]:
            raise AlignmentError(
                f"Degenerate correspondences (collinear or coincident points); singular values {S}"
            )

        R = V @ U.T
        corrected = False
        if np.linalg.det(R) < 0:
            V[:, -1] *= -1
            R = V @ U.T
            corrected = True
            logger.debug("Improper rotation from SVD; last singular vector flipped")

        t = c_src - R @ c_ref
        transform = RigidTransform(R, t)
        rmse = float(np.sqrt(np.mean(transform.residuals(ref, src) ** 2)))

        logger.info(
            f"Rigid registration on {n} pairs: det(R)={transform.determinant:.6f}, RMSE={rmse:.4f}"
        )
        return AlignmentResult(
            transform=transform,
            singular_values=S,
            n_correspondences=n,
            reflection_corrected=corrected,
            rmse=rmse,
        )

    @staticmethod
    def _validate(points: np.ndarray, name: str) -> np.ndarray:
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 3:
            raise AlignmentError(f"Expected Nx3 {name} array, got shape {arr.shape}")
        if not np.all(np.isfinite(arr)):
            raise AlignmentError(f"Non-finite values in {name} points")
        return arr


# ------------------------ Persistence ------------------------

def save_transform_matrix(transform: RigidTransform, output_file: str | Path) -> None:
    """Save a rigid transform as a 4x4 text matrix (reference -> source).

    Args:
        transform: Transform to save
        output_file: Path to output file
    """
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(output_path, transform.as_matrix(), fmt='%.18e', header='4x4 transformation matrix')
    logger.info(f"Saved transformation matrix to {output_path}")


def load_transform_matrix(input_file: str | Path) -> RigidTransform:
    """Load a rigid transform saved by ``save_transform_matrix``.

    Args:
        input_file: Path to input file

    Returns:
        RigidTransform
    """
    input_path = Path(input_file)
    if not input_path.is_file():
        raise InputPathError(f"Transform file not found: {input_path}")
    matrix = np.loadtxt(input_path)
    transform = RigidTransform.from_matrix(matrix)
    logger.info(f"Loaded transformation matrix from {input_path}")
    return transform
