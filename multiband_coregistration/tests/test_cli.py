"""
Tests for the command-line interface.
"""

import json

from multiband_coregistration.cli import USAGE, build_parser, main

from conftest import make_xmp, textured_image, write_jpeg


def make_capture(directory):
    for i, (rx, ry) in enumerate([(0, 0), (3.5, -1.25)]):
        write_jpeg(
            directory / f"IMG_0007_{i + 1}.jpg",
            textured_image(48, seed=30 + i),
            make_xmp({
                "CaptureUUID": "cli-uuid",
                "RelativeOpticalCenterX": str(rx),
                "RelativeOpticalCenterY": str(ry),
            }),
        )


class TestParser:
    """Tests for argument parsing."""

    def test_default_directories(self):
        args = build_parser().parse_args([])

        assert args.source == 'input'
        assert args.destination == 'output'
        assert args.workers is None
        assert not args.no_ecc

    def test_options(self):
        args = build_parser().parse_args(['raw', 'out', '-j', '3', '--no-ecc', '-v'])

        assert (args.source, args.destination) == ('raw', 'out')
        assert args.workers == 3
        assert args.no_ecc
        assert args.verbose


class TestMain:
    """Tests for the main entry point."""

    def test_missing_source_prints_usage(self, tmp_path, capsys):
        code = main([str(tmp_path / "nope"), str(tmp_path / "out")])

        assert code == 1
        out = capsys.readouterr().out
        assert USAGE in out
        assert not (tmp_path / "out").exists()

    def test_run(self, input_dir, tmp_path, capsys):
        make_capture(input_dir)
        dest = tmp_path / "aligned"

        code = main([str(input_dir), str(dest), '--no-ecc'])

        assert code == 0
        assert (dest / "IMG_0007_1.jpg").exists()
        assert (dest / "IMG_0007_2.jpg").exists()
        report = json.loads((dest / "transforms.json").read_text())
        assert report["groups"][0]["reference"] == "IMG_0007_1.jpg"
        assert "Images written:         2" in capsys.readouterr().out

    def test_config_file(self, input_dir, tmp_path):
        make_capture(input_dir)
        config = tmp_path / "config.yaml"
        config.write_text("write_report: false\n")
        dest = tmp_path / "aligned"

        assert main([str(input_dir), str(dest), '--config', str(config), '--no-ecc']) == 0
        assert not (dest / "transforms.json").exists()

    def test_bad_config(self, input_dir, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("no_such_setting: 1\n")

        assert main([str(input_dir), str(tmp_path / "out"), '--config', str(config)]) == 1

    def test_missing_config(self, input_dir, tmp_path):
        assert main([str(input_dir), str(tmp_path / "out"), '-c', str(tmp_path / "none.yaml")]) == 1

    def test_invalid_workers(self, input_dir, tmp_path):
        assert main([str(input_dir), str(tmp_path / "out"), '--workers', '0']) == 1

    def test_plots(self, input_dir, tmp_path):
        make_capture(input_dir)
        dest = tmp_path / "aligned"

        assert main([str(input_dir), str(dest), '--no-ecc', '--plots']) == 0
        assert (dest / "report" / "overlay_IMG_0007_2.png").exists()
        assert (dest / "report" / "transform_offsets.png").exists()
