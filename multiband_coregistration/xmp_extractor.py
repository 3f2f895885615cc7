"""Extraction of embedded XMP packets from TIFF and JPEG band images."""

import logging
import struct
from pathlib import Path
from typing import Tuple, Union

from PIL import Image

logger = logging.getLogger(__name__)

# Private TIFF tag carrying the XMP packet
TIFF_XMP_TAG = 700

# APP1 signature of an XMP segment, including the trailing NUL (29 bytes)
XMP_SIGNATURE = b"http://ns.adobe.com/xap/1.0/\x00"

TIFF_EXTENSIONS = {'.tif', '.tiff'}

_SOI = 0xD8
_APP1 = 0xE1
_SOS = 0xDA
_EOI = 0xD9


def _decode_xmp(payload: Union[bytes, str, tuple, None]) -> str:
    """Turn a raw tag payload into text."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload.rstrip("\x00")
    if isinstance(payload, tuple):
        # Older Pillow releases hand BYTE tags back as integer tuples
        try:
            payload = bytes(payload)
        except (TypeError, ValueError):
            return ""
    return payload.decode("utf-8", errors="ignore").rstrip("\x00")


def is_tiff_path(path: Union[str, Path]) -> bool:
    """Whether the file name carries a TIFF extension."""
    return Path(path).suffix.lower() in TIFF_EXTENSIONS


def read_tiff_xmp(path: Union[str, Path]) -> str:
    """
    Read the XMP packet stored in TIFF tag 700.

    Args:
        path: Path to a TIFF file

    Returns:
        The XMP text, or an empty string if the tag is absent or the file
        cannot be opened as a TIFF container.
    """
    try:
        with Image.open(path) as img:
            tags = getattr(img, 'tag_v2', None)
            if tags is None:
                return ""
            return _decode_xmp(tags.get(TIFF_XMP_TAG))
    except Exception as e:
        logger.debug(f"Could not open {path} as TIFF: {e}")
        return ""


def read_jpeg_xmp(path: Union[str, Path]) -> str:
    """
    Scan JPEG marker segments for the first XMP APP1 segment.

    Scanning starts at the mandatory SOI marker and stops at SOS, EOI, a
    malformed marker or any truncated read.

    Args:
        path: Path to a JPEG file

    Returns:
        The XMP text, or an empty string if none was found.
    """
    try:
        f = open(path, 'rb')
    except OSError as e:
        logger.debug(f"Could not open {path}: {e}")
        return ""

    with f:
        head = f.read(2)
        if len(head) != 2 or head[0] != 0xFF or head[1] != _SOI:
            return ""

        while True:
            marker_bytes = f.read(2)
            if len(marker_bytes) != 2 or marker_bytes[0] != 0xFF:
                return ""
            marker = marker_bytes[1]
            if marker in (_EOI, _SOS):
                return ""

            length_bytes = f.read(2)
            if len(length_bytes) != 2:
                return ""
            (length,) = struct.unpack('>H', length_bytes)
            content_length = length - 2
            if content_length < 0:
                return ""

            if marker == _APP1 and content_length > len(XMP_SIGNATURE):
                header = f.read(len(XMP_SIGNATURE))
                if len(header) != len(XMP_SIGNATURE):
                    return ""
                remaining = content_length - len(XMP_SIGNATURE)
                if header == XMP_SIGNATURE:
                    payload = f.read(remaining)
                    if len(payload) != remaining:
                        return ""
                    return _decode_xmp(payload)
                f.seek(remaining, 1)
            else:
                f.seek(content_length, 1)


def extract_xmp(path: Union[str, Path]) -> str:
    """
    Return the embedded XMP text of a band image, or an empty string.

    TIFF files are read through their XMP tag first; anything else, or a TIFF
    that could not be opened, goes through the JPEG segment scan.
    """
    if is_tiff_path(path):
        xmp = read_tiff_xmp(path)
        if xmp:
            return xmp
    return read_jpeg_xmp(path)


def read_image_size(path: Union[str, Path]) -> Tuple[int, int]:
    """Read (width, height) from the image header; (0, 0) if undeterminable."""
    try:
        with Image.open(path) as img:
            return int(img.width), int(img.height)
    except Exception as e:
        logger.debug(f"Could not read image size of {path}: {e}")
        return 0, 0
