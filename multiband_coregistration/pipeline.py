"""Main co-registration pipeline for multi-band captures."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np
from tqdm import tqdm

from .config import AlignmentConfig
from .compositor import write_image
from .dji_metadata import CaptureRecord, load_capture_record
from .grouping import group_by_capture, group_label, select_reference
from .quality import compare_alignment
from .refinement import Converged, refine_alignment, to_intensity
from .transforms import (
    UndistortionParams,
    compose_homography,
    metadata_homography,
    undistort_image,
    undistortion_params,
    warp_image,
)

logger = logging.getLogger(__name__)

REFINEMENT_CONVERGED = "converged"
REFINEMENT_FAILED = "failed"
REFINEMENT_SKIPPED = "skipped"


@dataclass(eq=False)
class TransformChain:
    """Transforms computed for one record."""
    undistortion: Optional[UndistortionParams]
    h_meta: np.ndarray
    h_total: np.ndarray
    h_ecc: Optional[np.ndarray] = None
    refinement: str = REFINEMENT_SKIPPED
    score: Optional[float] = None
    failure_reason: Optional[str] = None

    def to_dict(self) -> Dict:
        principal_point = None
        if self.undistortion is not None:
            principal_point = list(self.undistortion.principal_point)
        return {
            'undistorted': self.undistortion is not None,
            'principal_point': principal_point,
            'h_meta': self.h_meta.tolist(),
            'h_ecc': self.h_ecc.tolist() if self.h_ecc is not None else None,
            'h_total': self.h_total.tolist(),
            'refinement': self.refinement,
            'score': self.score,
            'failure_reason': self.failure_reason,
        }


@dataclass(frozen=True, eq=False)
class ReferenceContext:
    """Reference band of a group, prepared once and only read afterwards."""
    record: Optional[CaptureRecord] = None
    image: Optional[np.ndarray] = None  # Undistorted reference pixels
    intensity: Optional[np.ndarray] = None  # Normalized float32 intensity

    @property
    def available(self) -> bool:
        return self.record is not None and self.intensity is not None

    def is_reference(self, record: CaptureRecord) -> bool:
        return self.record is not None and self.record.path == record.path


@dataclass(eq=False)
class RecordResult:
    """Outcome of processing one band image."""
    filename: str
    group: str
    is_reference: bool = False
    output_path: Optional[Path] = None
    chain: Optional[TransformChain] = None
    quality: Optional[Dict] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.output_path is not None

    def to_dict(self) -> Dict:
        return {
            'filename': self.filename,
            'is_reference': self.is_reference,
            'output': str(self.output_path) if self.output_path else None,
            'transform': self.chain.to_dict() if self.chain else None,
            'quality': self.quality,
            'error': self.error,
        }


@dataclass
class PipelineSummary:
    """Results of a full run, keyed by group."""
    groups: Dict[str, List[RecordResult]] = field(default_factory=dict)
    references: Dict[str, Optional[str]] = field(default_factory=dict)
    report_path: Optional[Path] = None

    @property
    def results(self) -> List[RecordResult]:
        return [r for group in self.groups.values() for r in group]

    @property
    def written(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def refinement_failures(self) -> int:
        return sum(
            1 for r in self.results
            if r.chain is not None and r.chain.refinement == REFINEMENT_FAILED
        )


def read_image(path: Path) -> Optional[np.ndarray]:
    """Decode an image keeping its bit depth and channels; None on failure."""
    try:
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        logger.error(f"Failed to read image {path}: {e}")
        return None
    if image is None:
        logger.error(f"Failed to read image {path}")
    return image


class CoregistrationPipeline:
    """Pipeline aligning every band of every capture onto its reference band."""

    def __init__(
        self,
        input_dir: str,
        output_dir: str = "output",
        config: Optional[AlignmentConfig] = None
    ):
        """
        Initialize the co-registration pipeline.

        Args:
            input_dir: Directory containing the band images
            output_dir: Directory receiving the aligned images
            config: Alignment settings (defaults when omitted)
        """
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = config or AlignmentConfig()

        self.records: List[CaptureRecord] = []
        self.groups: Dict[str, List[CaptureRecord]] = {}

    def scan_input_dir(self) -> List[Path]:
        """List candidate images of the input directory, sorted by name."""
        extensions = set(self.config.extensions)
        return sorted(
            (p for p in self.input_dir.iterdir()
             if p.is_file() and p.suffix.lower() in extensions),
            key=lambda p: p.name
        )

    def load_records(self) -> List[CaptureRecord]:
        """Parse the metadata of every image of the input directory."""
        image_paths = self.scan_input_dir()
        logger.info(f"Found {len(image_paths)} images in {self.input_dir}")

        self.records = []
        for path in tqdm(image_paths, desc="Reading metadata"):
            try:
                self.records.append(load_capture_record(path))
            except Exception as e:
                logger.warning(f"Could not load metadata of {path}: {e}")
                continue

        self.groups = group_by_capture(self.records)
        logger.info(f"Loaded {len(self.records)} records in {len(self.groups)} capture groups")
        return self.records

    def build_reference_context(self, reference: Optional[CaptureRecord]) -> ReferenceContext:
        """Read and undistort the reference band of a group."""
        if reference is None:
            return ReferenceContext()

        raw = read_image(reference.path)
        if raw is None:
            logger.warning(f"Reference {reference.filename} unreadable, refinement disabled for its group")
            return ReferenceContext(record=reference)

        image = undistort_image(raw, undistortion_params(reference))
        intensity = to_intensity(image) if self.config.ecc_enabled else None

        # Shared read-only by every record of the group
        image.flags.writeable = False
        if intensity is not None:
            intensity.flags.writeable = False
        return ReferenceContext(record=reference, image=image, intensity=intensity)

    def compute_transform_chain(
        self,
        record: CaptureRecord,
        undistorted: np.ndarray,
        context: ReferenceContext,
        params: Optional[UndistortionParams] = None
    ) -> TransformChain:
        """Metadata alignment followed by the optional ECC refinement."""
        h_meta = metadata_homography(record, self.config.translation_threshold)
        chain = TransformChain(undistortion=params, h_meta=h_meta, h_total=h_meta.copy())
        logger.debug(f"{record.filename} h_meta:\n{h_meta}")

        if not self.config.ecc_enabled or not context.available or context.is_reference(record):
            return chain

        logger.debug(f"Refining {record.filename} against {context.record.filename}")
        result = refine_alignment(
            undistorted,
            h_meta,
            context.intensity,
            max_iterations=self.config.ecc_max_iterations,
            epsilon=self.config.ecc_epsilon,
            gauss_filter_size=self.config.ecc_gauss_filter_size
        )

        if isinstance(result, Converged):
            chain.h_ecc = result.homography
            chain.h_total = compose_homography(h_meta, result.homography)
            chain.refinement = REFINEMENT_CONVERGED
            chain.score = result.score
            logger.debug(f"{record.filename} ECC converged (cc={result.score:.4f})")
        else:
            chain.refinement = REFINEMENT_FAILED
            chain.failure_reason = result.reason
            logger.warning(
                f"ECC failed for {record.filename}, using metadata alignment: {result.reason}"
            )

        return chain

    def process_record(
        self,
        record: CaptureRecord,
        context: ReferenceContext,
        group_key: str = ""
    ) -> RecordResult:
        """Run undistortion, alignment and output for one band image."""
        is_reference = context.is_reference(record)
        result = RecordResult(
            filename=record.filename,
            group=group_label(group_key),
            is_reference=is_reference
        )

        try:
            params = undistortion_params(record)
            if is_reference and context.image is not None:
                undistorted = context.image
            else:
                raw = read_image(record.path)
                if raw is None:
                    result.error = "could not read image"
                    return result
                undistorted = undistort_image(raw, params)

            chain = self.compute_transform_chain(record, undistorted, context, params)
            result.chain = chain

            aligned = warp_image(undistorted, chain.h_total)

            if self.config.compute_quality and context.image is not None and not is_reference:
                try:
                    result.quality = compare_alignment(context.image, aligned)
                except ValueError as e:
                    logger.warning(f"Could not compare {record.filename} with reference: {e}")

            result.output_path = write_image(aligned, self.output_dir, record.filename)
            if result.output_path is None:
                result.error = "could not write image"
        except Exception as e:
            logger.exception(f"Failed to process {record.filename}: {e}")
            result.error = str(e)

        return result

    def process_group(self, group_key: str, records: List[CaptureRecord]) -> List[RecordResult]:
        """
        Align all records of one capture group.

        The reference context is fully built before any other record is
        processed; the other records only read it.
        """
        label = group_label(group_key)
        logger.info(f"Processing group {label} ({len(records)} images)")

        reference = select_reference(records, self.config.reference_tolerance)
        if reference is not None and not reference.has_relative_offset:
            logger.info(f"  Reference: {reference.filename} (no relative offset metadata)")
        elif reference is not None:
            logger.info(f"  Reference: {reference.filename}")
        else:
            logger.info(f"  No reference image found for group {label}")

        context = self.build_reference_context(reference)

        if self.config.workers > 1 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
                results = list(executor.map(
                    lambda record: self.process_record(record, context, group_key),
                    records
                ))
        else:
            results = [self.process_record(record, context, group_key) for record in records]

        return results

    def write_report(self, summary: PipelineSummary) -> Optional[Path]:
        """Write the per-record transforms of a run as JSON; None if it could not be saved."""
        report = {
            'input_dir': str(self.input_dir),
            'output_dir': str(self.output_dir),
            'groups': [
                {
                    'uuid': key,
                    'label': group_label(key),
                    'reference': summary.references.get(key),
                    'records': [r.to_dict() for r in results],
                }
                for key, results in summary.groups.items()
            ],
        }
        report_path = self.output_dir / self.config.report_name
        try:
            with report_path.open('w', encoding='utf-8') as f:
                json.dump(report, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save transform report {report_path}: {e}")
            return None
        logger.info(f"Transform report saved to {report_path}")
        return report_path

    def run_full_pipeline(self) -> PipelineSummary:
        """Run the complete pipeline."""
        logger.info("Starting band co-registration")

        self.load_records()

        summary = PipelineSummary()
        for key, records in tqdm(self.groups.items(), desc="Aligning groups"):
            results = self.process_group(key, records)
            summary.groups[key] = results
            summary.references[key] = next(
                (r.filename for r in results if r.is_reference), None
            )

        if self.config.write_report:
            summary.report_path = self.write_report(summary)

        logger.info(
            f"Processed {len(summary.results)} images: {summary.written} written, "
            f"{summary.failed} failed, {summary.refinement_failures} refinement fallbacks"
        )
        return summary
