"""Smoke tests for the command line entry point."""

from __future__ import annotations

import pandas as pd

from conftest import make_step_pair
from mrf_denoise.cli import main as cli_main
from mrf_denoise.processing.reader import imread, imwrite


def test_cli_pair_writes_outputs(tmp_path):
    original, noisy = make_step_pair(size=32)
    imwrite(tmp_path / "original.png", original)
    imwrite(tmp_path / "noisy.png", noisy)
    output_dir = tmp_path / "results"

    cli_main([
        str(tmp_path / "original.png"),
        str(tmp_path / "noisy.png"),
        "-a", "GMRF",
        "-a", "rTV-MRF",
        "--fixed",
        "--max-iter", "5",
        "--output-dir", str(output_dir),
        "--plot",
    ])

    for name in ("GMRF", "rTV-MRF"):
        restored = imread(output_dir / f"{name}.png")
        assert restored.shape == original.shape, f"{name} output has wrong shape"
        assert (output_dir / f"{name}_history.png").exists()
        assert (output_dir / f"{name}_result.png").exists()

    comparison = pd.read_csv(output_dir / "comparison.csv")
    assert list(comparison["algorithm"]) == ["GMRF", "rTV-MRF"]
    history = pd.read_csv(output_dir / "history.csv")
    assert set(history["algorithm"]) == {"GMRF", "rTV-MRF"}


def test_cli_synthesizes_noise(tmp_path):
    original, _ = make_step_pair(size=32)
    imwrite(tmp_path / "original.png", original)
    output_dir = tmp_path / "out"

    cli_main([
        str(tmp_path / "original.png"),
        "-a", "LC-MRF",
        "--fixed",
        "--seed", "3",
        "--noise-sigma", "8",
        "--output-dir", str(output_dir),
    ])

    noisy = imread(output_dir / "noisy.png")
    assert noisy.shape == original.shape
    assert (noisy != original).any()
    assert (output_dir / "LC-MRF.png").exists()
