"""
Tests for XMP packet extraction from JPEG and TIFF containers.
"""

import struct

import numpy as np
from PIL import Image, TiffImagePlugin

from multiband_coregistration.xmp_extractor import (
    XMP_SIGNATURE,
    extract_xmp,
    read_image_size,
    read_jpeg_xmp,
    read_tiff_xmp,
)

from conftest import app1_segment, make_xmp, textured_image, write_jpeg


def segment(marker: int, payload: bytes) -> bytes:
    return bytes([0xFF, marker]) + struct.pack(">H", len(payload) + 2) + payload


class TestJpegScan:
    """Tests for the JPEG marker segment scan."""

    def test_finds_xmp_segment(self, tmp_path):
        xmp = make_xmp({"CaptureUUID": "abc"})
        data = (
            b"\xFF\xD8"
            + segment(0xE0, b"JFIF\x00\x01\x02")
            + app1_segment(XMP_SIGNATURE + xmp.encode())
            + b"\xFF\xDA\x00\x02"
        )
        path = tmp_path / "a.jpg"
        path.write_bytes(data)

        assert read_jpeg_xmp(path) == xmp

    def test_skips_non_xmp_app1(self, tmp_path):
        exif = b"Exif\x00\x00" + b"\x00" * 40
        xmp = make_xmp({"CaptureUUID": "abc"})
        data = (
            b"\xFF\xD8"
            + app1_segment(exif)
            + app1_segment(XMP_SIGNATURE + xmp.encode())
            + b"\xFF\xD9"
        )
        path = tmp_path / "b.jpg"
        path.write_bytes(data)

        assert read_jpeg_xmp(path) == xmp

    def test_only_first_xmp_segment_is_used(self, tmp_path):
        first = make_xmp({"CaptureUUID": "first"})
        second = make_xmp({"CaptureUUID": "second"})
        data = (
            b"\xFF\xD8"
            + app1_segment(XMP_SIGNATURE + first.encode())
            + app1_segment(XMP_SIGNATURE + second.encode())
            + b"\xFF\xD9"
        )
        path = tmp_path / "c.jpg"
        path.write_bytes(data)

        assert read_jpeg_xmp(path) == first

    def test_stops_at_start_of_scan(self, tmp_path):
        xmp = make_xmp({"CaptureUUID": "late"})
        data = (
            b"\xFF\xD8"
            + b"\xFF\xDA\x00\x02"
            + app1_segment(XMP_SIGNATURE + xmp.encode())
        )
        path = tmp_path / "d.jpg"
        path.write_bytes(data)

        assert read_jpeg_xmp(path) == ""

    def test_short_app1_is_skipped(self, tmp_path):
        data = b"\xFF\xD8" + app1_segment(b"short") + b"\xFF\xD9"
        path = tmp_path / "e.jpg"
        path.write_bytes(data)

        assert read_jpeg_xmp(path) == ""

    def test_truncated_segment_returns_empty(self, tmp_path):
        xmp = make_xmp({"CaptureUUID": "abc"}).encode()
        full = app1_segment(XMP_SIGNATURE + xmp)
        path = tmp_path / "f.jpg"
        path.write_bytes(b"\xFF\xD8" + full[:-10])

        assert read_jpeg_xmp(path) == ""

    def test_missing_soi_returns_empty(self, tmp_path):
        path = tmp_path / "g.jpg"
        path.write_bytes(b"not a jpeg at all")

        assert read_jpeg_xmp(path) == ""

    def test_missing_file_returns_empty(self, tmp_path):
        assert read_jpeg_xmp(tmp_path / "missing.jpg") == ""

    def test_real_jpeg_with_inserted_xmp(self, tmp_path):
        xmp = make_xmp({"RelativeOpticalCenterX": "1.5"})
        path = write_jpeg(tmp_path / "real.jpg", textured_image(32), xmp)

        assert extract_xmp(path) == xmp
        assert read_image_size(path) == (32, 32)


class TestTiffTag:
    """Tests for reading the XMP tag of TIFF files."""

    def _write_tiff_with_xmp(self, path, xmp: str):
        image = Image.fromarray(textured_image(24))
        ifd = TiffImagePlugin.ImageFileDirectory_v2()
        ifd[700] = xmp.encode("utf-8")
        ifd.tagtype[700] = 1  # BYTE
        image.save(path, tiffinfo=ifd)

    def test_reads_xmp_tag(self, tmp_path):
        xmp = make_xmp({"CaptureUUID": "tiff-uuid", "RelativeOpticalCenterX": "-2.25"})
        path = tmp_path / "band.TIF"
        self._write_tiff_with_xmp(path, xmp)

        text = read_tiff_xmp(path)
        assert 'drone-dji:CaptureUUID="tiff-uuid"' in text
        assert extract_xmp(path) == text

    def test_tiff_without_tag_returns_empty(self, tmp_path):
        path = tmp_path / "plain.tif"
        Image.fromarray(textured_image(24)).save(path)

        assert read_tiff_xmp(path) == ""
        assert extract_xmp(path) == ""

    def test_unopenable_tiff_returns_empty(self, tmp_path):
        path = tmp_path / "broken.tif"
        path.write_bytes(b"II*\x00garbage")

        assert extract_xmp(path) == ""

    def test_image_size(self, tmp_path):
        path = tmp_path / "size.tif"
        Image.fromarray(np.zeros((12, 20), dtype=np.uint8)).save(path)

        assert read_image_size(path) == (20, 12)

    def test_image_size_of_unreadable_file(self, tmp_path):
        path = tmp_path / "nothing.tif"
        path.write_bytes(b"")

        assert read_image_size(path) == (0, 0)
