"""
Основной модуль движка шумоподавления.

Содержит класс DenoiseEngine: внешний интерфейс к решётке и решателям
MRF (передача входных данных, запуск алгоритмов, получение результата,
карты SSIM и сравнение алгоритмов).
"""

import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional

import numpy as np
import pandas as pd

from mrf_denoise.algorithms import (
    ALGORITHMS,
    IterationResult,
    MRFAlgorithm,
    Task,
    get_algorithm,
)
from mrf_denoise.algorithms.base import ParamsLike, StepCallback
from mrf_denoise.lattice import Lattice
from mrf_denoise.metrics import ssim_heatmap
from mrf_denoise.processing.display import ModuleDisplay
from mrf_denoise.processing.reader import ModuleReader
from mrf_denoise.processing.tables import ModuleData, comparison_frame
from mrf_denoise.utils import check_integrity

logger = logging.getLogger(__name__)


class RunSummary(NamedTuple):
    """Итог одного запуска в режиме сравнения."""
    iterations: int
    energy: float
    psnr: float
    ssim: float
    time: float
    task: Task
    output: np.ndarray


class DenoiseEngine:
    """
    Движок шумоподавления изображений в оттенках серого.

    Атрибуты
    --------
    width, height : int
        Размеры решётки.
    size : int
        Число пикселей.
    lattice : Lattice
        Состояние решётки.
    history : dict
        Название алгоритма -> история отчётов последнего запуска.
    solvers : dict
        Название алгоритма -> экземпляр решателя последнего запуска.
    summaries : dict
        Итоги последнего сравнения алгоритмов.
    """

    def __init__(self, width: int, height: int) -> None:
        """
        Инициализация движка.

        Параметры
        ---------
        width : int
            Ширина изображения.
        height : int
            Высота изображения.
        """
        self.lattice = Lattice(width, height)
        self.width = self.lattice.width
        self.height = self.lattice.height
        self.size = self.lattice.size
        self.history: Dict[str, List[IterationResult]] = {}
        self.solvers: Dict[str, MRFAlgorithm] = {}
        self.summaries: Dict[str, RunSummary] = {}

        self.reader = ModuleReader(self)
        self.tables = ModuleData(self)
        self.display = ModuleDisplay(self)

    def set_input(self, original: np.ndarray, noisy: np.ndarray) -> None:
        """
        Передача исходного и зашумлённого изображений.

        Параметры
        ---------
        original : ndarray
            Байты исходного изображения: плоский буфер длины width*height
            или массив (height, width).
        noisy : ndarray
            Байты зашумлённого изображения того же размера.
        """
        self.lattice.set_input(original, noisy)

    # ------------------------------------------------------------------
    # Запуск решателей
    # ------------------------------------------------------------------

    def iterate(self,
                algorithm: str,
                params: ParamsLike = None,
                cancel: Optional[threading.Event] = None) -> Iterator[IterationResult]:
        """
        Пошаговый запуск: генератор отчётов, управляемый вызывающим кодом.

        Решатель создаётся сразу, поэтому неизвестное имя даёт KeyError
        до начала обхода.
        """
        solver = get_algorithm(algorithm, params)
        self.solvers[solver.get_name()] = solver
        return solver.iterate(self.lattice, cancel)

    def run(self,
            algorithm: str,
            params: ParamsLike = None,
            on_step: Optional[StepCallback] = None,
            cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        """
        Блокирующий запуск алгоритма по имени.

        Параметры
        ---------
        algorithm : str
            'GMRF', 'HGMRF', 'LC-MRF', 'rTV-MRF' (или 'TV-MRF').
        params : запись параметров, dict или None
            Гиперпараметры; None - значения по умолчанию.
        on_step : callable, optional
            Обратный вызов для каждого отчёта.
        cancel : threading.Event, optional
            Флаг отмены.

        Возвращает
        ----------
        list of IterationResult
            История отчётов.
        """
        solver = get_algorithm(algorithm, params)
        history = solver.run(self.lattice, on_step, cancel)
        self.solvers[solver.get_name()] = solver
        self.history[solver.get_name()] = history
        return history

    def run_gmrf(self, params: ParamsLike = None, on_step: Optional[StepCallback] = None,
                 cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        return self.run('GMRF', params, on_step, cancel)

    def run_hgmrf(self, params: ParamsLike = None, on_step: Optional[StepCallback] = None,
                  cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        return self.run('HGMRF', params, on_step, cancel)

    def run_lc_mrf(self, params: ParamsLike = None, on_step: Optional[StepCallback] = None,
                   cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        return self.run('LC-MRF', params, on_step, cancel)

    def run_tv_mrf(self, params: ParamsLike = None, on_step: Optional[StepCallback] = None,
                   cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        return self.run('rTV-MRF', params, on_step, cancel)

    # ------------------------------------------------------------------
    # Результаты
    # ------------------------------------------------------------------

    def get_output(self) -> np.ndarray:
        """Текущая оценка как плоский буфер uint8 длины width*height."""
        return self.lattice.get_output().ravel()

    def get_ssim_heatmap(self) -> np.ndarray:
        """Карта локального SSIM между исходным и текущим изображением, uint8 (n, 4)."""
        return ssim_heatmap(self.lattice.original, self.lattice.current).reshape(self.size, 4)

    def get_initial_ssim_heatmap(self) -> np.ndarray:
        """Карта локального SSIM между исходным и зашумлённым изображением, uint8 (n, 4)."""
        return ssim_heatmap(self.lattice.original, self.lattice.noisy).reshape(self.size, 4)

    def check_integrity(self, data: Optional[np.ndarray] = None) -> None:
        """
        Диагностика передачи данных: сравнивает байты с их вещественным
        представлением в решётке.

        Параметры
        ---------
        data : ndarray, optional
            Исходные байты зашумлённого изображения; по умолчанию -
            само зашумлённое изображение решётки, округлённое до байтов.
        """
        if data is None:
            data = np.floor(self.lattice.noisy + 0.5).astype(np.uint8)
        check_integrity(data, self.lattice.noisy)

    def compare(self,
                algorithms: Optional[Iterable[str]] = None,
                params: Optional[Mapping[str, ParamsLike]] = None,
                on_step: Optional[StepCallback] = None,
                cancel: Optional[threading.Event] = None) -> pd.DataFrame:
        """
        Последовательный запуск нескольких алгоритмов на одной паре изображений.

        Каждый решатель стартует с зашумлённого изображения; после
        сравнения текущей оценкой решётки остаётся результат последнего.

        Параметры
        ---------
        algorithms : iterable of str, optional
            Имена алгоритмов; по умолчанию все четыре.
        params : dict, optional
            Имя алгоритма -> параметры.

        Возвращает
        ----------
        pandas.DataFrame
            Итоговые итерации, энергия, PSNR, SSIM и время каждого запуска.
        """
        if algorithms is None:
            algorithms = ['GMRF', 'HGMRF', 'LC-MRF', 'rTV-MRF']
        params = params or {}
        self.summaries = {}
        for name in algorithms:
            if name not in ALGORITHMS:
                raise KeyError(f"Неизвестный алгоритм '{name}'")
            start = time.time()
            history = self.run(name, params.get(name), on_step, cancel)
            elapsed = time.time() - start
            last = history[-1]
            self.summaries[name] = RunSummary(last.iteration, last.energy, last.psnr, last.ssim,
                                              elapsed, last.task, self.get_output())
            logger.info("Сравнение: %s PSNR=%.3f SSIM=%.4f за %.3f с",
                        name, last.psnr, last.ssim, elapsed)
            if last.task == Task.CANCELLED:
                break
        return comparison_frame(self.summaries)
