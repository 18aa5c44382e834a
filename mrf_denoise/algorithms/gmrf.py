"""
GMRF: гауссовское марковское случайное поле

Априорная энергия:

    E(x) = (λ/2)·Σ x_i² + (α/2)·Σ_{i~j} (x_i - x_j)²

MAP-оценка m находится проходами Гаусса-Зейделя:

    m_i = (y_i/σ² + α·Σ_{j~i} m_j) / (λ + 1/σ² + α·|N(i)|)

В режиме обучения λ и α поднимаются по градиенту маргинального
логарифмического правдоподобия, а σ² переводится в стационарную точку.
Определители заменены спектральным приближением с весами φ_i:

    ψ_i = λ + α·φ_i,   χ_i = 1/σ² + ψ_i
"""

import logging
import threading
from typing import Iterator, NamedTuple, Optional

import numpy as np

from mrf_denoise.algorithms.base import (
    CONV_EPSILON,
    FIXED_MODE_ITERATIONS,
    IterationResult,
    MRFAlgorithm,
    Task,
    mean_abs_change,
)
from mrf_denoise.algorithms.params import GMRFParams, MRFParams
from mrf_denoise.lattice import Lattice
from mrf_denoise.utils import safe_denom

logger = logging.getLogger(__name__)


class GMRFGradients(NamedTuple):
    """Градиенты маргинального правдоподобия и стационарное σ²."""
    grad_lambda: float
    grad_alpha: float
    sigma_sq: float


def gauss_seidel_sweep(lattice: Lattice,
                       m: np.ndarray,
                       data: np.ndarray,
                       p: MRFParams) -> np.ndarray:
    """
    Один проход Гаусса-Зейделя для MAP-оценки GMRF (на месте).

    Знаменатели зависят только от числа соседей и вычисляются один раз
    на проход.
    """
    inv_sigma = 1.0 / safe_denom(p.sigma_sq)
    denom = safe_denom(p.lambda_ + inv_sigma + p.alpha * lattice.neighbor_count)
    weighted_data = data * inv_sigma
    return lattice.red_black_sweep(
        m, lambda field: (weighted_data + p.alpha * lattice.neighbor_sum(field)) / denom)


def marginal_log_likelihood(psi: np.ndarray,
                            chi: np.ndarray,
                            sigma_sq: float,
                            residual_sq: float,
                            n: int) -> float:
    """
    Маргинальное логарифмическое правдоподобие на пиксель:

        ½·mean(log ψ - log χ) - ½·log(2πσ²) - Σ(y - m)² / (2σ²n)
    """
    log_det = np.mean(np.log(safe_denom(psi)) - np.log(safe_denom(chi)))
    s2 = safe_denom(sigma_sq)
    return float(0.5 * log_det - 0.5 * np.log(2.0 * np.pi * s2) - residual_sq / (2.0 * s2 * n))


def compute_gradients(lattice: Lattice,
                      m: np.ndarray,
                      data: np.ndarray,
                      phi: np.ndarray,
                      p: GMRFParams) -> GMRFGradients:
    """
    Градиенты маргинального правдоподобия по λ и α и новое σ².

    Каждое слагаемое нормируется на 2n.
    """
    n = lattice.size
    m_sq = float(np.sum(m * m))
    diff_sq = lattice.squared_edge_sum(m)
    residual_sq = float(np.sum((data - m) ** 2))

    psi = p.lambda_ + p.alpha * phi
    chi = 1.0 / safe_denom(p.sigma_sq) + psi
    inv_psi = 1.0 / safe_denom(psi)
    inv_chi = 1.0 / safe_denom(chi)

    grad_lambda = (-m_sq - np.sum(inv_chi) + np.sum(inv_psi)) / (2.0 * n)
    grad_alpha = (-diff_sq - np.sum(phi * inv_chi) + np.sum(phi * inv_psi)) / (2.0 * n)
    sigma_sq = residual_sq / n + np.sum(inv_chi) / n
    return GMRFGradients(float(grad_lambda), float(grad_alpha), float(sigma_sq))


def update_parameters(p: GMRFParams, grads: GMRFGradients) -> GMRFParams:
    """Шаг подъёма по градиенту; возвращает новую запись с нижними границами."""
    return p.updated(
        lambda_=p.lambda_ + p.eta_lambda * grads.grad_lambda,
        alpha=p.alpha + p.eta_alpha * grads.grad_alpha,
        sigma_sq=grads.sigma_sq,
    ).clamped()


class GMRF(MRFAlgorithm):
    """
    Шумоподавление гауссовским MRF с оценкой параметров.

    Атрибуты
    --------
    param : GMRFParams
        Гиперпараметры и скорости обучения.
    """

    params_type = GMRFParams

    def __init__(self, param=None) -> None:
        super().__init__('GMRF', param)

    def _solve(self,
               lattice: Lattice,
               p: GMRFParams,
               cancel: Optional[threading.Event]) -> Iterator[IterationResult]:
        data, mean = lattice.center()
        m = data.copy()
        phi = lattice.spectral_weights()
        n = lattice.size

        yield self._report(lattice, 0, 0.0, m, mean, Task.INITIALIZING)

        if not p.is_learning:
            sweeps = 0
            for sweeps in range(1, FIXED_MODE_ITERATIONS + 1):
                stopped = self._cancelled(cancel, lattice, sweeps, m, mean)
                if stopped is not None:
                    yield stopped
                    return
                m_old = m.copy()
                gauss_seidel_sweep(lattice, m, data, p)
                if mean_abs_change(m, m_old) < CONV_EPSILON:
                    break
            psi = p.lambda_ + p.alpha * phi
            chi = 1.0 / safe_denom(p.sigma_sq) + psi
            likelihood = marginal_log_likelihood(psi, chi, p.sigma_sq,
                                                 float(np.sum((data - m) ** 2)), n)
            yield self._report(lattice, sweeps, likelihood, m, mean, Task.CONVERGED)
            return

        for iteration in range(1, p.max_iter + 1):
            stopped = self._cancelled(cancel, lattice, iteration, m, mean)
            if stopped is not None:
                yield stopped
                return
            m_old = m.copy()

            # 1. MAP-оценка
            for _ in range(2):
                gauss_seidel_sweep(lattice, m, data, p)
            yield self._report(lattice, iteration, 0.0, m, mean, Task.MAP_OPTIMIZATION)

            # 2. Оценка параметров
            yield self._report(lattice, iteration, 0.0, m, mean, Task.PARAMETER_ESTIMATION)
            grads = compute_gradients(lattice, m, data, phi, p)
            p = update_parameters(p, grads)
            self.learned_param = p

            psi = p.lambda_ + p.alpha * phi
            chi = 1.0 / safe_denom(p.sigma_sq) + psi
            likelihood = marginal_log_likelihood(psi, chi, p.sigma_sq,
                                                 float(np.sum((data - m) ** 2)), n)

            converged = mean_abs_change(m, m_old) < CONV_EPSILON
            if iteration % 10 == 0 or iteration == p.max_iter or converged:
                logger.debug("GMRF: λ=%.3e α=%.3e σ²=%.4f L=%.6f",
                             p.lambda_, p.alpha, p.sigma_sq, likelihood)
                yield self._report(lattice, iteration, likelihood, m, mean, Task.STABLE)
                if converged:
                    break

