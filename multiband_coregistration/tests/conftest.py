"""
Shared fixtures: synthetic band images and DJI XMP packets.
"""

import struct
from pathlib import Path
from typing import Dict, Optional

import cv2
import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

XMP_SIGNATURE = b"http://ns.adobe.com/xap/1.0/\x00"


def make_xmp(attributes: Dict[str, str]) -> str:
    """Build a DJI style XMP packet with drone-dji attributes."""
    attrs = "\n".join(
        f'    drone-dji:{key}="{value}"' for key, value in attributes.items()
    )
    return (
        '<?xpacket begin="" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">\n'
        ' <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">\n'
        '  <rdf:Description rdf:about="DJI Meta Data"\n'
        '    xmlns:drone-dji="http://www.dji.com/drone-dji/1.0/"\n'
        f'{attrs}>\n'
        '  </rdf:Description>\n'
        ' </rdf:RDF>\n'
        '</x:xmpmeta>\n'
        '<?xpacket end="w"?>'
    )


def app1_segment(payload: bytes) -> bytes:
    return b"\xFF\xE1" + struct.pack(">H", len(payload) + 2) + payload


def insert_xmp_into_jpeg(jpeg_bytes: bytes, xmp: str) -> bytes:
    """Insert an XMP APP1 segment right after the SOI marker."""
    assert jpeg_bytes[:2] == b"\xFF\xD8"
    segment = app1_segment(XMP_SIGNATURE + xmp.encode("utf-8"))
    return jpeg_bytes[:2] + segment + jpeg_bytes[2:]


def textured_image(size: int = 96, seed: int = 0) -> np.ndarray:
    """Smooth random texture, uint8, single channel."""
    rng = np.random.default_rng(seed)
    noise = rng.random((size, size)).astype(np.float32)
    smooth = cv2.GaussianBlur(noise, (0, 0), 3)
    smooth = cv2.normalize(smooth, None, 10, 245, cv2.NORM_MINMAX)
    return smooth.astype(np.uint8)


def write_jpeg(path: Path, image: np.ndarray, xmp: Optional[str] = None) -> Path:
    ok, encoded = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, 95])
    assert ok
    data = encoded.tobytes()
    if xmp is not None:
        data = insert_xmp_into_jpeg(data, xmp)
    path.write_bytes(data)
    return path


def write_tiff(path: Path, image: np.ndarray) -> Path:
    assert cv2.imwrite(str(path), image)
    return path


@pytest.fixture
def texture():
    return textured_image()


@pytest.fixture
def input_dir(tmp_path):
    d = tmp_path / "input"
    d.mkdir()
    return d


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "output"
