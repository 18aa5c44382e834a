"""Tests for image I/O, history tables and figures."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from mrf_denoise import DenoiseEngine, Task
from mrf_denoise.algorithms import GMRFParams, IterationResult
from mrf_denoise.processing.display import plot_history, show_results
from mrf_denoise.processing.reader import imread, imwrite, load_pair
from mrf_denoise.processing.tables import comparison_frame, history_to_frame, save_history


def _history():
    return [
        IterationResult(0, 0.0, 30.0, 0.8, Task.INITIALIZING),
        IterationResult(1, 0.0, 31.0, 0.82, Task.MAP_OPTIMIZATION),
        IterationResult(1, -3.5, 31.0, 0.82, Task.STABLE),
    ]


class TestReader:
    def test_roundtrip(self, tmp_path, step_pair):
        path = tmp_path / "images" / "original.png"
        imwrite(path, step_pair[0])
        np.testing.assert_array_equal(imread(path), step_pair[0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            imread(tmp_path / "missing.png")

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ValueError):
            imread(path)

    def test_load_pair_shape_mismatch(self, tmp_path):
        imwrite(tmp_path / "a.png", np.zeros((4, 4), dtype=np.uint8))
        imwrite(tmp_path / "b.png", np.zeros((4, 5), dtype=np.uint8))
        with pytest.raises(ValueError):
            load_pair(tmp_path / "a.png", tmp_path / "b.png")

    def test_engine_reader_module(self, tmp_path, constant_pair):
        imwrite(tmp_path / "orig.png", constant_pair[0])
        imwrite(tmp_path / "noisy.png", constant_pair[1])
        engine = DenoiseEngine(4, 4)
        engine.reader.read_pair(tmp_path / "orig.png", tmp_path / "noisy.png")
        engine.run_gmrf(GMRFParams(is_learning=False))
        engine.reader.save_output(tmp_path / "out" / "restored.png")
        np.testing.assert_array_equal(imread(tmp_path / "out" / "restored.png"), constant_pair[1])


class TestTables:
    def test_history_frame(self):
        frame = history_to_frame(_history())
        assert list(frame.columns) == ["iteration", "energy", "psnr", "ssim", "task"]
        assert list(frame["task"]) == ["INITIALIZING", "MAP OPTIMIZATION", "STABLE"]

    def test_save_history(self, tmp_path):
        path = tmp_path / "data" / "history.csv"
        save_history(_history(), path)
        loaded = pd.read_csv(path)
        assert len(loaded) == 3
        assert loaded["energy"].iloc[-1] == pytest.approx(-3.5)

    def test_comparison_frame_from_engine(self, constant_pair):
        engine = DenoiseEngine(4, 4)
        engine.set_input(*constant_pair)
        engine.compare(["GMRF", "rTV-MRF"])
        frame = comparison_frame(engine.summaries)
        assert list(frame["algorithm"]) == ["GMRF", "rTV-MRF"]
        assert list(frame["task"]) == ["STABLE", "CONVERGED"]

    def test_engine_table(self, tmp_path, constant_pair):
        engine = DenoiseEngine(4, 4)
        engine.set_input(*constant_pair)
        engine.run_gmrf()
        engine.run_tv_mrf()
        table = engine.tables.get_table(tmp_path / "all.csv")
        assert set(table["algorithm"]) == {"GMRF", "rTV-MRF"}
        assert (tmp_path / "all.csv").exists()
        assert len(engine.tables.get_history("GMRF")) == len(engine.history["GMRF"])


class TestDisplay:
    def test_plot_history(self):
        fig = plot_history(_history(), title="GMRF")
        assert len(fig.axes) == 3

    def test_show_results_with_heatmaps(self, step_pair):
        original, noisy = step_pair
        heat = np.zeros(original.shape + (4,), dtype=np.uint8)
        fig = show_results(original, noisy, noisy, heat, heat)
        assert len(fig.axes) == 6

    def test_engine_display(self, constant_pair):
        engine = DenoiseEngine(4, 4)
        engine.set_input(*constant_pair)
        engine.run_gmrf()
        assert len(engine.display.show(show=False).axes) == 6
        assert engine.display.show_history("GMRF", show=False) is not None
        assert engine.display.show_history("HGMRF", show=False) is None
