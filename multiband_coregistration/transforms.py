"""
Geometric transforms of the alignment chain.

Stage A removes lens distortion using the DewarpData calibration, stage B
derives the coarse metadata homography and stage D resamples the image with
the final homography. All homographies map output pixels back to source
pixels and are applied with ``WARP_INVERSE_MAP``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from .dji_metadata import CaptureRecord

logger = logging.getLogger(__name__)

# Offsets at or below this magnitude are treated as no translation
TRANSLATION_THRESHOLD = 0.0001


@dataclass(frozen=True, eq=False)
class UndistortionParams:
    """Camera matrix and distortion vector for cv2.undistort."""
    camera_matrix: np.ndarray  # 3x3
    distortion_coeffs: np.ndarray  # (k1, k2, p1, p2, k3)

    @property
    def principal_point(self):
        return float(self.camera_matrix[0, 2]), float(self.camera_matrix[1, 2])


def undistortion_params(record: CaptureRecord) -> Optional[UndistortionParams]:
    """
    Build the undistortion camera model of a record.

    The principal point is the frame center (or the calibrated optical
    center when the frame size is unknown) shifted by the DewarpData offset:
    x is subtracted, y is added, following the vendor coordinate convention.

    Returns:
        UndistortionParams, or None when the record carries no distortion data
    """
    if not record.has_distortion:
        return None

    calibrated_cx, calibrated_cy = record.calibrated_center
    center_x = record.width / 2.0 if record.width > 0 else calibrated_cx
    center_y = record.height / 2.0 if record.height > 0 else calibrated_cy

    final_cx = center_x - record.cx_d
    final_cy = center_y + record.cy_d

    camera_matrix = np.array([
        [record.fx, 0.0, final_cx],
        [0.0, record.fy, final_cy],
        [0.0, 0.0, 1.0]
    ], dtype=np.float64)

    return UndistortionParams(
        camera_matrix=camera_matrix,
        distortion_coeffs=record.distortion_coeffs,
    )


def undistort_image(image: np.ndarray, params: Optional[UndistortionParams]) -> np.ndarray:
    """
    Remove lens distortion from an image.

    The camera matrix is used as both source and new camera matrix so the
    output keeps the input scale and framing. Without params the image is
    passed through as a copy.
    """
    if params is None:
        return image.copy()
    return cv2.undistort(
        image,
        params.camera_matrix,
        params.distortion_coeffs,
        None,
        params.camera_matrix
    )


def translation_homography(dx: float, dy: float) -> np.ndarray:
    """Homography of a pure translation."""
    h = np.eye(3, dtype=np.float64)
    h[0, 2] = dx
    h[1, 2] = dy
    return h


def metadata_homography(
    record: CaptureRecord,
    threshold: float = TRANSLATION_THRESHOLD
) -> np.ndarray:
    """
    Coarse alignment homography derived from metadata.

    Priority: explicit DewarpHMatrix, then relative optical center
    translation, then identity.
    """
    if record.has_homography:
        return np.array(record.homography, dtype=np.float64)

    rel_x, rel_y = record.relative_offset
    if abs(rel_x) > threshold or abs(rel_y) > threshold:
        return translation_homography(rel_x, rel_y)

    return np.eye(3, dtype=np.float64)


def compose_homography(h_meta: np.ndarray, h_ecc: np.ndarray) -> np.ndarray:
    """
    Compose a refinement found in the metadata-aligned frame with the
    metadata homography.

    h_meta maps aligned -> original and h_ecc maps reference -> aligned, so
    the product maps reference -> original.
    """
    return np.asarray(h_meta, dtype=np.float64) @ np.asarray(h_ecc, dtype=np.float64)


def is_identity(h: np.ndarray) -> bool:
    return bool(np.array_equal(np.asarray(h, dtype=np.float64), np.eye(3)))


def warp_image(image: np.ndarray, homography: np.ndarray) -> np.ndarray:
    """
    Resample an image with an inverse-mapped perspective warp.

    The output has the input's pixel dimensions. An exact identity returns
    an unmodified copy.
    """
    if is_identity(homography):
        return image.copy()
    h, w = image.shape[:2]
    return cv2.warpPerspective(
        image,
        np.asarray(homography, dtype=np.float64),
        (w, h),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP
    )
