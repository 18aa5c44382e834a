"""
rTV-MRF: анизотропная полная вариация, метод Split-Bregman

Задача:

    min_x  (λ/2)·Σx² + μ·Σ_{i~j} |x_i - x_j| + Σ(y - x)²/(2σ²)

Разности соседей заменяются вспомогательными переменными d с брэгмановскими
поправками b. Итерация состоит из трёх шагов:

    x-шаг: проходы Гаусса-Зейделя по квадратичной задаче относительно x
    d-шаг: мягкое сжатие d = shrink(∇x + b, μ/λ_reg)
    b-шаг: b ← b + ∇x - d
"""

import logging
import threading
from typing import Iterator, Optional, Tuple

import numpy as np

from mrf_denoise.algorithms.base import (
    CONV_EPSILON,
    IterationResult,
    MRFAlgorithm,
    Task,
    mean_abs_change,
)
from mrf_denoise.algorithms.params import TVMRFParams
from mrf_denoise.lattice import Lattice
from mrf_denoise.utils import safe_denom

logger = logging.getLogger(__name__)

# Вес штрафа расщепления
LAMBDA_REG = 1.0


def tv_energy(x: np.ndarray, data: np.ndarray, p: TVMRFParams) -> float:
    """Отрицательный логарифм апостериорной вероятности TV-модели."""
    dx, dy = Lattice.edge_differences(x)
    residual = data - x
    return float(0.5 * p.lambda_ * np.sum(x * x)
                 + p.alpha * (np.sum(np.abs(dx)) + np.sum(np.abs(dy)))
                 + np.sum(residual * residual) / (2.0 * safe_denom(p.sigma_sq)))


def shrink(diff: np.ndarray, threshold: float) -> np.ndarray:
    """Мягкое сжатие: max(|diff| - threshold, 0)·sign(diff)."""
    magnitude = np.abs(diff)
    return np.maximum(magnitude - threshold, 0.0) * (diff / safe_denom(magnitude))


def split_term(d_x: np.ndarray, b_x: np.ndarray, d_y: np.ndarray, b_y: np.ndarray) -> np.ndarray:
    """
    Вклад (d - b) в соседнюю сумму x-шага.

    Для правого/нижнего соседа слагаемое входит со знаком плюс,
    для левого/верхнего - с минусом.
    """
    g_x = d_x - b_x
    g_y = d_y - b_y
    term = np.zeros((g_y.shape[0] + 1, g_x.shape[1] + 1))
    term[:, :-1] += g_x
    term[:, 1:] -= g_x
    term[:-1, :] += g_y
    term[1:, :] -= g_y
    return term


def x_step(lattice: Lattice,
           x: np.ndarray,
           data: np.ndarray,
           term: np.ndarray,
           p: TVMRFParams) -> np.ndarray:
    """Один проход Гаусса-Зейделя x-шага (на месте)."""
    inv_sigma = 1.0 / safe_denom(p.sigma_sq)
    denom = safe_denom(p.lambda_ + inv_sigma + LAMBDA_REG * lattice.neighbor_count)
    weighted_data = data * inv_sigma
    return lattice.red_black_sweep(
        x, lambda field: (weighted_data + LAMBDA_REG * (lattice.neighbor_sum(field) + term)) / denom)


def bregman_step(x: np.ndarray,
                 b_x: np.ndarray,
                 b_y: np.ndarray,
                 mu: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """d-шаг и b-шаг; возвращает новые (d_x, d_y, b_x, b_y)."""
    dx, dy = Lattice.edge_differences(x)
    d_x = shrink(dx + b_x, mu / LAMBDA_REG)
    d_y = shrink(dy + b_y, mu / LAMBDA_REG)
    return d_x, d_y, b_x + dx - d_x, b_y + dy - d_y


class TVMRF(MRFAlgorithm):
    """
    Шумоподавление rTV-MRF методом Split-Bregman.

    Обучение параметров не поддерживается; вес вариации задаётся alpha.
    """

    params_type = TVMRFParams

    def __init__(self, param=None) -> None:
        super().__init__('rTV-MRF', param)

    def _solve(self,
               lattice: Lattice,
               p: TVMRFParams,
               cancel: Optional[threading.Event]) -> Iterator[IterationResult]:
        if p.is_learning:
            logger.warning("%s: обучение параметров не поддерживается, is_learning игнорируется",
                           self.name)
        data, mean = lattice.center()
        x = data.copy()
        h, w = x.shape
        d_x = np.zeros((h, w - 1))
        b_x = np.zeros((h, w - 1))
        d_y = np.zeros((h - 1, w))
        b_y = np.zeros((h - 1, w))

        yield self._report(lattice, 0, 0.0, x, mean, Task.INITIALIZING)

        for iteration in range(1, p.max_iter + 1):
            stopped = self._cancelled(cancel, lattice, iteration, x, mean)
            if stopped is not None:
                yield stopped
                return
            x_old = x.copy()

            term = split_term(d_x, b_x, d_y, b_y)
            for _ in range(2):
                x_step(lattice, x, data, term, p)
            d_x, d_y, b_x, b_y = bregman_step(x, b_x, b_y, p.alpha)

            energy = tv_energy(x, data, p)
            yield self._report(lattice, iteration, energy, x, mean, Task.OPTIMIZING)

            if mean_abs_change(x, x_old) < CONV_EPSILON:
                yield self._report(lattice, iteration, energy, x, mean, Task.CONVERGED)
                break
