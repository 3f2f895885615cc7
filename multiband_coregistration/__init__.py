"""Multi-band image co-registration from embedded DJI calibration metadata."""

__version__ = "0.1.0"

from .config import AlignmentConfig
from .xmp_extractor import extract_xmp, read_image_size
from .dji_metadata import CaptureRecord, parse_xmp_metadata, load_capture_record
from .grouping import FALLBACK_GROUP_KEY, group_by_capture, select_reference
from .transforms import (
    UndistortionParams,
    undistortion_params,
    undistort_image,
    metadata_homography,
    compose_homography,
    warp_image,
)
from .refinement import Converged, Failed, refine_alignment
from .compositor import write_image
from .pipeline import (
    CoregistrationPipeline,
    TransformChain,
    ReferenceContext,
    RecordResult,
    PipelineSummary,
)
from .quality import compare_alignment

__all__ = [
    'AlignmentConfig',
    'extract_xmp',
    'read_image_size',
    'CaptureRecord',
    'parse_xmp_metadata',
    'load_capture_record',
    'FALLBACK_GROUP_KEY',
    'group_by_capture',
    'select_reference',
    'UndistortionParams',
    'undistortion_params',
    'undistort_image',
    'metadata_homography',
    'compose_homography',
    'warp_image',
    'Converged',
    'Failed',
    'refine_alignment',
    'write_image',
    'CoregistrationPipeline',
    'TransformChain',
    'ReferenceContext',
    'RecordResult',
    'PipelineSummary',
    'compare_alignment',
]
