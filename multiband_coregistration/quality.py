"""Alignment quality metrics between an aligned band and its reference."""

import logging
from typing import Dict, Optional

import numpy as np
from skimage.metrics import structural_similarity as ssim

from .refinement import to_intensity

logger = logging.getLogger(__name__)

# Smallest side accepted by the default SSIM window
_MIN_SSIM_SIDE = 7


def compare_alignment(reference: np.ndarray, aligned: np.ndarray) -> Dict[str, Optional[float]]:
    """
    Compare an aligned band with the reference band.

    Both images are reduced to normalized intensity; pixel statistics are
    taken over pixels that are non-zero in both (warp borders are zero).

    Args:
        reference: Undistorted reference image
        aligned: Aligned output image of another band

    Returns:
        Dict with rmse, mae, correlation, ssim, valid_pixels, total_pixels
    """
    ref_gray = to_intensity(reference)
    aligned_gray = to_intensity(aligned)

    if ref_gray.shape != aligned_gray.shape:
        raise ValueError(
            f"Cannot compare images of different size: {ref_gray.shape} vs {aligned_gray.shape}"
        )

    valid_mask = (ref_gray > 0) & (aligned_gray > 0)
    n_valid = int(valid_mask.sum())

    rmse = mae = correlation = 0.0
    if n_valid > 0:
        diff = ref_gray[valid_mask].astype(float) - aligned_gray[valid_mask].astype(float)
        rmse = float(np.sqrt(np.mean(diff ** 2)))
        mae = float(np.mean(np.abs(diff)))

        a = ref_gray[valid_mask]
        b = aligned_gray[valid_mask]
        if n_valid > 1 and np.std(a) > 0 and np.std(b) > 0:
            correlation = float(np.corrcoef(a, b)[0, 1])

    ssim_value = None
    if min(ref_gray.shape) >= _MIN_SSIM_SIDE:
        ssim_value = float(ssim(ref_gray, aligned_gray, data_range=1.0))

    metrics = {
        'rmse': rmse,
        'mae': mae,
        'correlation': correlation,
        'ssim': ssim_value,
        'valid_pixels': n_valid,
        'total_pixels': int(valid_mask.size),
    }
    logger.debug(
        f"Alignment metrics: rmse={rmse:.4f} mae={mae:.4f} "
        f"correlation={correlation:.4f} ssim={ssim_value}"
    )
    return metrics
