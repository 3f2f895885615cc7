"""Visualization utilities for band alignment analysis."""

import logging
from pathlib import Path
from typing import Optional

import cv2
import matplotlib.pyplot as plt
import numpy as np

from .pipeline import PipelineSummary, REFINEMENT_CONVERGED, REFINEMENT_FAILED
from .refinement import to_intensity

logger = logging.getLogger(__name__)


def _checkerboard(a: np.ndarray, b: np.ndarray, tiles: int = 8) -> np.ndarray:
    """Interleave two equally sized images in a checkerboard pattern."""
    h, w = a.shape[:2]
    ys = (np.arange(h) * tiles // max(h, 1))[:, None]
    xs = (np.arange(w) * tiles // max(w, 1))[None, :]
    mask = (ys + xs) % 2 == 0
    return np.where(mask, a, b)


def visualize_band_overlay(
    reference_path: str,
    aligned_path: str,
    output_path: Optional[str] = None,
    tiles: int = 8
):
    """
    Visualize how well an aligned band overlays its reference.

    Shows a false-colour composite (reference in magenta, aligned band in
    green) next to a checkerboard mosaic of both bands.

    Args:
        reference_path: Aligned reference band image
        aligned_path: Aligned image of another band
        output_path: Path to save visualization
        tiles: Number of checkerboard tiles per side
    """
    reference = cv2.imread(str(reference_path), cv2.IMREAD_UNCHANGED)
    aligned = cv2.imread(str(aligned_path), cv2.IMREAD_UNCHANGED)

    if reference is None or aligned is None:
        raise ValueError("Could not load images")

    ref_gray = to_intensity(reference)
    aligned_gray = to_intensity(aligned)

    if ref_gray.shape != aligned_gray.shape:
        raise ValueError(
            f"Band sizes differ: {ref_gray.shape[::-1]} vs {aligned_gray.shape[::-1]}"
        )

    composite = np.dstack([ref_gray, aligned_gray, ref_gray])
    mosaic = _checkerboard(ref_gray, aligned_gray, tiles)

    fig, axes = plt.subplots(1, 2, figsize=(16, 8))

    axes[0].imshow(composite)
    axes[0].set_title('Overlay (magenta: reference, green: aligned)')
    axes[0].axis('off')

    axes[1].imshow(mosaic, cmap='gray', vmin=0.0, vmax=1.0)
    axes[1].set_title('Checkerboard mosaic')
    axes[1].axis('off')

    fig.suptitle(f'{Path(aligned_path).name} -> {Path(reference_path).name}', fontsize=12)
    plt.tight_layout()

    if output_path:
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        logger.info(f"Band overlay saved to {output_path}")
    else:
        plt.show()

    plt.close()


def visualize_transform_offsets(
    summary: PipelineSummary,
    output_path: Optional[str] = None
):
    """
    Plot the translation part of every final homography.

    Args:
        summary: Results of a pipeline run
        output_path: Path to save visualization
    """
    rows = [
        r for r in summary.results
        if r.chain is not None and not r.is_reference
    ]
    if not rows:
        logger.info("No aligned bands to visualize")
        return

    offsets = np.array([[r.chain.h_total[0, 2], r.chain.h_total[1, 2]] for r in rows])
    colors = []
    for r in rows:
        if r.chain.refinement == REFINEMENT_CONVERGED:
            colors.append('tab:green')
        elif r.chain.refinement == REFINEMENT_FAILED:
            colors.append('tab:red')
        else:
            colors.append('tab:gray')

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    axes[0].scatter(offsets[:, 0], offsets[:, 1], c=colors, s=40, alpha=0.8, edgecolors='black')
    axes[0].axhline(0, color='black', linewidth=0.5)
    axes[0].axvline(0, color='black', linewidth=0.5)
    axes[0].set_xlabel('Translation X (pixels)')
    axes[0].set_ylabel('Translation Y (pixels)')
    axes[0].set_title('Final Transform Offsets (green: ECC, red: ECC failed, gray: metadata)')
    axes[0].grid(True, alpha=0.3)

    scores = [r.chain.score for r in rows if r.chain.score is not None]
    if scores:
        axes[1].hist(scores, bins=20, edgecolor='black', alpha=0.7)
        axes[1].axvline(np.mean(scores), color='r', linestyle='--', label=f'Mean: {np.mean(scores):.3f}')
        axes[1].legend()
    axes[1].set_xlabel('ECC Correlation')
    axes[1].set_ylabel('Frequency')
    axes[1].set_title('Refinement Correlation Distribution')
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()

    if output_path:
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        logger.info(f"Transform offset visualization saved to {output_path}")
    else:
        plt.show()

    plt.close()


def create_alignment_report(
    summary: PipelineSummary,
    output_dir: str = "output/report",
    max_overlays_per_group: int = 5
):
    """
    Create overlay plots for every group plus an offset summary.

    Args:
        summary: Results of a pipeline run
        output_dir: Directory to save visualizations
        max_overlays_per_group: Maximum number of overlays per capture group
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Creating alignment report...")

    for key, results in summary.groups.items():
        reference = next((r for r in results if r.is_reference and r.ok), None)
        if reference is None:
            continue

        others = [r for r in results if r.ok and not r.is_reference]
        for r in others[:max_overlays_per_group]:
            output_path = output_dir / f"overlay_{Path(r.filename).stem}.png"
            try:
                visualize_band_overlay(
                    str(reference.output_path), str(r.output_path), str(output_path)
                )
            except ValueError as e:
                logger.warning(f"Skipping overlay of {r.filename}: {e}")

    visualize_transform_offsets(summary, str(output_dir / "transform_offsets.png"))

    logger.info(f"Alignment report saved to {output_dir}")
