"""
Базовый класс для решателей MRF.
"""

import abc
import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple, Type, Union

import numpy as np

from mrf_denoise.algorithms.params import MRFParams
from mrf_denoise.lattice import Lattice
from mrf_denoise.metrics import PSNR, SSIM

logger = logging.getLogger(__name__)

# Порог сходимости по среднему абсолютному изменению пикселя
CONV_EPSILON = 1.0e-3
# Число проходов в режиме без обучения
FIXED_MODE_ITERATIONS = 100


class Task(str, Enum):
    """Метки фаз, передаваемые в отчётах о ходе вычислений."""
    INITIALIZING = "INITIALIZING"
    MAP_OPTIMIZATION = "MAP OPTIMIZATION"
    MCMC_PRIOR_SAMPLING = "MCMC PRIOR SAMPLING"
    MCMC_POSTERIOR_SAMPLING = "MCMC POSTERIOR SAMPLING"
    PARAMETER_ESTIMATION = "PARAMETER ESTIMATION"
    STABLE = "STABLE"
    OPTIMIZING = "OPTIMIZING"
    CONVERGED = "CONVERGED"
    OPTIMAL_PEAK_FOUND = "OPTIMAL PEAK FOUND"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


class IterationResult(NamedTuple):
    """
    Отчёт об одном шаге решателя.

    Атрибуты
    --------
    iteration : int
        Номер внешней итерации (0 - исходное состояние).
    energy : float
        Маргинальное логарифмическое правдоподобие (GMRF/HGMRF, больше - лучше)
        или отрицательный логарифм апостериорной вероятности (LC-MRF/TV,
        меньше - лучше). 0.0 для отчётов-маркеров фаз.
    psnr : float
        PSNR текущей оценки относительно исходного изображения.
    ssim : float
        Глобальный SSIM текущей оценки.
    task : Task
        Метка фазы.
    """
    iteration: int
    energy: float
    psnr: float
    ssim: float
    task: Task


StepCallback = Callable[[IterationResult], None]
ParamsLike = Union[MRFParams, Dict[str, Any], None]


class MRFAlgorithm(abc.ABC):
    """
    Абстрактный базовый класс для решателей MRF.

    Решатель работает как ленивая конечная последовательность отчётов:
    iterate() - генератор, управляемый вызывающим кодом, run() прогоняет
    его до конца и вызывает обратный вызов на каждом отчёте.

    Attributes
    ----------
    name : str
        Название алгоритма.
    param : MRFParams
        Текущая запись гиперпараметров (неизменяемая).
    timer : float
        Время выполнения последнего вызова run() в секундах.
    learned_param : MRFParams
        Параметры после последнего шага обучения.
    """

    name = 'default'
    params_type: Type[MRFParams] = MRFParams

    def __init__(self, name: str, param: ParamsLike = None) -> None:
        """
        Инициализация решателя.

        Parameters
        ----------
        name : str
            Название алгоритма.
        param : MRFParams, dict или None
            Гиперпараметры; None - значения по умолчанию.
        """
        super().__init__()
        self.name = name
        self.timer = -1
        self.param = self._coerce(param)
        self.learned_param = self.param

    def _coerce(self, param: ParamsLike) -> MRFParams:
        if param is None:
            return self.params_type()
        if isinstance(param, dict):
            return self.params_type.from_dict(param)
        if not isinstance(param, self.params_type):
            raise TypeError(
                f"{self.name} ожидает {self.params_type.__name__}, получено {type(param).__name__}")
        return param

    def change_param(self, param: Dict[str, Any]) -> None:
        """
        Изменение гиперпараметров алгоритма.

        Parameters
        ----------
        param : dict
            Словарь с параметрами для изменения.
        """
        self.param = self.param.updated(**param)

    def get_param(self) -> List[Tuple[str, Any]]:
        """
        Получение текущих гиперпараметров алгоритма.

        Returns
        -------
        params : list of tuple
            Список кортежей (название_параметра, значение).
        """
        return list(self.param.to_dict().items())

    def get_name(self) -> str:
        """Получение названия алгоритма."""
        return self.name

    def get_timer(self) -> float:
        """
        Получение времени работы алгоритма.

        Returns
        -------
        timer : float
            Время выполнения в секундах (-1 если не запускался).
        """
        return self.timer

    def import_param_from_file(self, file: str) -> None:
        """
        Загрузка параметров из JSON-файла.

        Parameters
        ----------
        file : str
            Путь к JSON-файлу с параметрами.
        """
        with open(file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        self.change_param(data)

    def iterate(self,
                lattice: Lattice,
                cancel: Optional[threading.Event] = None) -> Iterator[IterationResult]:
        """
        Ленивая последовательность отчётов решателя.

        Решётка захватывается эксклюзивно на всё время обхода генератора
        и освобождается при его завершении или закрытии.

        Parameters
        ----------
        lattice : Lattice
            Решётка с заданными входными изображениями.
        cancel : threading.Event, optional
            Флаг отмены, проверяемый на границе каждой внешней итерации.
        """
        with lattice.exclusive(self.name):
            logger.info("%s: запуск на решётке %dx%d, параметры %s",
                        self.name, lattice.width, lattice.height, self.param)
            self.learned_param = self.param
            yield from self._solve(lattice, self.param, cancel)

    def run(self,
            lattice: Lattice,
            on_step: Optional[StepCallback] = None,
            cancel: Optional[threading.Event] = None) -> List[IterationResult]:
        """
        Блокирующий запуск решателя.

        Parameters
        ----------
        lattice : Lattice
            Решётка с заданными входными изображениями.
        on_step : callable, optional
            Синхронный обратный вызов, получающий каждый IterationResult.
        cancel : threading.Event, optional
            Флаг отмены.

        Returns
        -------
        history : list of IterationResult
            Все отчёты в порядке поступления.
        """
        history = []
        start = time.time()
        steps = self.iterate(lattice, cancel)
        try:
            for result in steps:
                history.append(result)
                if on_step is not None:
                    on_step(result)
        finally:
            # Исключение из on_step тоже должно освободить решётку
            steps.close()
            self.timer = time.time() - start
        if history:
            last = history[-1]
            logger.info("%s: завершено за %.3f с, итерация %d, PSNR=%.3f, SSIM=%.4f (%s)",
                        self.name, self.timer, last.iteration, last.psnr, last.ssim, last.task)
        return history

    def process(self, noisy: np.ndarray, original: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Удобная обработка одного изображения.

        Parameters
        ----------
        noisy : ndarray (H, W)
            Зашумлённое изображение.
        original : ndarray (H, W), optional
            Чистое изображение для метрик; если не задано, метрики
            считаются относительно зашумлённого.

        Returns
        -------
        restored : ndarray (H, W) uint8
            Восстановленное изображение.
        """
        if original is None:
            original = noisy
        lattice = Lattice.from_images(original, noisy)
        self.run(lattice)
        return lattice.get_output()

    @abc.abstractmethod
    def _solve(self,
               lattice: Lattice,
               p: MRFParams,
               cancel: Optional[threading.Event]) -> Iterator[IterationResult]:
        """
        Итерационная схема конкретного алгоритма.

        Получает копию параметров и возвращает отчёты через yield.
        """

    def _report(self,
                lattice: Lattice,
                iteration: int,
                energy: float,
                centered: np.ndarray,
                mean: float,
                task: Task) -> IterationResult:
        """
        Формирует отчёт: снимает центрирование, обновляет текущую оценку
        решётки и считает метрики в физическом диапазоне 0-255.
        """
        uncentered = lattice.publish(centered, mean)
        result = IterationResult(iteration, float(energy),
                                 PSNR(lattice.original, uncentered),
                                 SSIM(lattice.original, uncentered),
                                 task)
        logger.debug("%s: итерация %d [%s] energy=%.6g PSNR=%.3f SSIM=%.4f",
                     self.name, iteration, task, result.energy, result.psnr, result.ssim)
        return result

    def _cancelled(self,
                   cancel: Optional[threading.Event],
                   lattice: Lattice,
                   iteration: int,
                   centered: np.ndarray,
                   mean: float) -> Optional[IterationResult]:
        """Отчёт CANCELLED, если выставлен флаг отмены, иначе None."""
        if cancel is None or not cancel.is_set():
            return None
        logger.info("%s: отменено на итерации %d", self.name, iteration)
        return self._report(lattice, iteration, 0.0, centered, mean, Task.CANCELLED)


def mean_abs_change(new: np.ndarray, old: np.ndarray) -> float:
    """Среднее абсолютное изменение пикселей между двумя оценками."""
    return float(np.mean(np.abs(new - old)))


def finite_or_zero(value: float) -> float:
    """Заменяет нечисловое или бесконечное значение нулём."""
    return value if np.isfinite(value) else 0.0
