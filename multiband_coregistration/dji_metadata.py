"""Parser for DJI calibration and alignment XMP metadata of band images."""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .xmp_extractor import extract_xmp, read_image_size

logger = logging.getLogger(__name__)

DJI_NAMESPACE = "drone-dji"


def _identity() -> np.ndarray:
    return np.eye(3, dtype=np.float64)


@dataclass(frozen=True, eq=False)
class CaptureRecord:
    """Calibration and alignment parameters of a single band image."""
    path: Path
    filename: str
    uuid: str = ""
    width: int = 0
    height: int = 0

    # Lens distortion (DewarpData)
    fx: float = 0.0
    fy: float = 0.0
    cx_d: float = 0.0  # Principal point offset, x
    cy_d: float = 0.0  # Principal point offset, y
    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0
    k3: float = 0.0
    has_distortion: bool = False
    calibrated_cx: Optional[float] = None
    calibrated_cy: Optional[float] = None

    # Alignment
    relative_x: Optional[float] = None
    relative_y: Optional[float] = None
    homography: np.ndarray = field(default_factory=_identity)
    has_homography: bool = False

    @property
    def relative_offset(self) -> Tuple[float, float]:
        """Relative optical center offset, absent values read as 0.0."""
        return (self.relative_x or 0.0, self.relative_y or 0.0)

    @property
    def has_relative_offset(self) -> bool:
        return self.relative_x is not None or self.relative_y is not None

    @property
    def calibrated_center(self) -> Tuple[float, float]:
        """Calibrated optical center, absent values read as 0.0."""
        return (self.calibrated_cx or 0.0, self.calibrated_cy or 0.0)

    @property
    def distortion_coeffs(self) -> np.ndarray:
        """Distortion vector in OpenCV order (k1, k2, p1, p2, k3)."""
        return np.array([self.k1, self.k2, self.p1, self.p2, self.k3], dtype=np.float64)


def _find_value(xmp: str, key: str) -> Optional[str]:
    """Find the raw text of a drone-dji value in either attribute or element form."""
    name = re.escape(f"{DJI_NAMESPACE}:{key}")
    match = re.search(name + r'\s*=\s*"([^"]*)"', xmp)
    if match is None:
        match = re.search(r'<' + name + r'>([^<]*)</' + name + r'>', xmp)
    if match is None:
        return None
    return match.group(1)


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _split_values(value: str) -> List[str]:
    """Split a comma-separated list; a trailing comma adds no element."""
    parts = value.split(',')
    if parts and not parts[-1].strip():
        parts.pop()
    return parts


def _parse_float_list(parts: List[str]) -> Optional[List[float]]:
    """Parse float tokens; None if any of them is malformed."""
    numbers = []
    for part in parts:
        number = _parse_float(part.strip())
        if number is None:
            return None
        numbers.append(number)
    return numbers


def parse_dewarp_data(value: Optional[str]) -> Optional[List[float]]:
    """
    Parse a DewarpData string of the form ``<prefix>;fx,fy,cx,cy,k1,k2,p1,p2,k3``.

    Only the first nine coefficients are read; anything after them is ignored.

    Returns:
        The nine coefficients, or None if the value is absent or malformed.
    """
    if value is None or ';' not in value:
        return None
    parts = _split_values(value.split(';', 1)[1])
    if len(parts) < 9:
        return None
    return _parse_float_list(parts[:9])


def parse_homography(value: Optional[str]) -> Optional[np.ndarray]:
    """Parse a DewarpHMatrix string holding exactly nine row-major values."""
    if value is None:
        return None
    numbers = _parse_float_list(_split_values(value))
    if numbers is None or len(numbers) != 9:
        return None
    return np.array(numbers, dtype=np.float64).reshape(3, 3)


def parse_xmp_metadata(xmp: str, record: CaptureRecord) -> CaptureRecord:
    """
    Merge the calibration fields found in an XMP packet into a record.

    Missing and malformed values are equivalent: the corresponding field keeps
    its current value. This function never raises on bad metadata.

    Args:
        xmp: Raw XMP text
        record: Record to update

    Returns:
        A new CaptureRecord with the parsed fields applied
    """
    updates: Dict[str, object] = {}

    uuid = _find_value(xmp, "CaptureUUID")
    if uuid:
        updates['uuid'] = uuid

    for key, attr in (
        ("CalibratedOpticalCenterX", 'calibrated_cx'),
        ("CalibratedOpticalCenterY", 'calibrated_cy'),
        ("RelativeOpticalCenterX", 'relative_x'),
        ("RelativeOpticalCenterY", 'relative_y'),
    ):
        number = _parse_float(_find_value(xmp, key))
        if number is not None:
            updates[attr] = number

    dewarp = parse_dewarp_data(_find_value(xmp, "DewarpData"))
    if dewarp is not None:
        fx, fy, cx_d, cy_d, k1, k2, p1, p2, k3 = dewarp
        updates.update(
            fx=fx, fy=fy, cx_d=cx_d, cy_d=cy_d,
            k1=k1, k2=k2, p1=p1, p2=p2, k3=k3,
            has_distortion=True,
        )

    homography = parse_homography(_find_value(xmp, "DewarpHMatrix"))
    if homography is not None:
        updates['homography'] = homography
        updates['has_homography'] = True

    parsed = replace(record, **updates)
    logger.debug(
        f"{parsed.filename}: uuid={parsed.uuid or '-'} "
        f"calibrated=({parsed.calibrated_cx}, {parsed.calibrated_cy}) "
        f"relative=({parsed.relative_x}, {parsed.relative_y}) present={parsed.has_relative_offset} "
        f"distortion={parsed.has_distortion} homography={parsed.has_homography}"
    )
    return parsed


def load_capture_record(path: Union[str, Path]) -> CaptureRecord:
    """
    Build a CaptureRecord for an image file from its header and XMP packet.

    Args:
        path: Path to a TIFF or JPEG band image

    Returns:
        CaptureRecord with every field that could be determined
    """
    path = Path(path)
    width, height = read_image_size(path)
    record = CaptureRecord(path=path, filename=path.name, width=width, height=height)

    xmp = extract_xmp(path)
    if not xmp:
        logger.debug(f"No XMP metadata found in {path.name}")
        return record
    return parse_xmp_metadata(xmp, record)
