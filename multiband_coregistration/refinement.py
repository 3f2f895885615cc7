"""Photometric refinement of the metadata alignment with ECC maximisation."""

import logging
from dataclasses import dataclass
from typing import Union

import cv2
import numpy as np

from .transforms import warp_image

logger = logging.getLogger(__name__)

ECC_MAX_ITERATIONS = 50
ECC_EPSILON = 1e-3
ECC_GAUSS_FILTER_SIZE = 5


@dataclass(frozen=True, eq=False)
class Converged:
    """ECC finished; homography maps reference pixels into the moving frame."""
    homography: np.ndarray
    score: float


@dataclass(frozen=True)
class Failed:
    """ECC diverged or could not run."""
    reason: str


RefinementResult = Union[Converged, Failed]


def to_intensity(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to single channel float32 normalized to [0, 1].

    Colour images are converted to luminance first; the min-max range of the
    result is stretched independently for every image.
    """
    if image.ndim == 3 and image.shape[2] == 4:
        gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    elif image.ndim == 3 and image.shape[2] == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 3:
        gray = image[..., 0]
    else:
        gray = image

    gray = gray.astype(np.float32)
    return cv2.normalize(gray, None, 0.0, 1.0, cv2.NORM_MINMAX, dtype=cv2.CV_32F)


def refine_alignment(
    undistorted: np.ndarray,
    h_meta: np.ndarray,
    reference_intensity: np.ndarray,
    max_iterations: int = ECC_MAX_ITERATIONS,
    epsilon: float = ECC_EPSILON,
    gauss_filter_size: int = ECC_GAUSS_FILTER_SIZE
) -> RefinementResult:
    """
    Search the homography maximising intensity correlation with the reference.

    The moving image is first warped by the metadata homography so the
    search starts close to the answer; the search is seeded at identity.

    Args:
        undistorted: Undistorted moving image
        h_meta: Metadata homography of the moving image
        reference_intensity: Normalized intensity of the reference band
        max_iterations: Iteration cap of the ECC search
        epsilon: Minimum correlation improvement per iteration
        gauss_filter_size: Gaussian pre-filter kernel size used by ECC

    Returns:
        Converged with the refinement homography and correlation, or Failed
    """
    aligned = warp_image(undistorted, h_meta)
    moving_intensity = to_intensity(aligned)

    if moving_intensity.shape != reference_intensity.shape:
        return Failed(
            f"size mismatch {moving_intensity.shape[::-1]} vs "
            f"{reference_intensity.shape[::-1]}"
        )

    warp = np.eye(3, dtype=np.float32)
    criteria = (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, max_iterations, epsilon)

    try:
        cc, warp = cv2.findTransformECC(
            reference_intensity,
            moving_intensity,
            warp,
            cv2.MOTION_HOMOGRAPHY,
            criteria,
            None,
            gauss_filter_size
        )
    except cv2.error as e:
        return Failed(str(e).strip())

    h_ecc = warp.astype(np.float64)
    if not np.all(np.isfinite(h_ecc)):
        return Failed("non-finite refinement homography")
    return Converged(homography=h_ecc, score=float(cc))
