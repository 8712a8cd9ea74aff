"""
Tests for the command-line interface
"""

import os

import pandas as pd
import rasterio

from pixelharmonics.cli import main


class TestCLI:
    def test_sample(self, tmp_path, capsys):
        assert main(["sample", str(tmp_path / "scenes"), "--scenes", "4"]) == 0
        assert len(os.listdir(tmp_path / "scenes")) == 4
        assert "Sample scenes" in capsys.readouterr().out

    def test_fit(self, tmp_path, scene_dir):
        output = tmp_path / "coefs.tif"
        chart = tmp_path / "chart.csv"

        code = main(
            [
                "fit", scene_dir, "--order", "1", "-o", str(output),
                "--workers", "2", "--chart", str(chart),
            ]
        )

        assert code == 0
        with rasterio.open(output) as dst:
            assert dst.count == 7
            assert dst.shape == (10, 12)

        table = pd.read_csv(chart, index_col="time", parse_dates=True)
        assert list(table.columns) == ["NDVI", "fitted"]
        assert len(table) == 8

    def test_fit_window_and_strategy(self, tmp_path, scene_dir):
        output = tmp_path / "coefs.tif"
        code = main(
            [
                "fit", scene_dir, "--order", "1", "-o", str(output),
                "--window", "1", "2", "3", "4", "--strategy", "pixelwise",
            ]
        )

        assert code == 0
        with rasterio.open(output) as dst:
            assert dst.shape == (3, 4)

    def test_peak(self, tmp_path, scene_dir):
        output = tmp_path / "peak.tif"
        assert main(["peak", scene_dir, "-o", str(output), "--end", "2019-03-31"]) == 0

        with rasterio.open(output) as dst:
            assert dst.descriptions == ("NDVI_max", "DOY")
            doy = dst.read(2)
            assert doy[doy == doy].min() >= 5
            assert doy[doy == doy].max() <= 85

    def test_missing_source(self, tmp_path, capsys):
        code = main(["fit", str(tmp_path / "missing"), "-o", str(tmp_path / "out.tif")])

        assert code == 1
        assert "not found" in capsys.readouterr().err

    def test_no_command(self):
        assert main([]) == 1
