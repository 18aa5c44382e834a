"""
HGMRF: иерархическое гауссовское марковское случайное поле

Модель содержит три связанных поля:
    u - оценка чистого изображения,
    v - латентное гладкое поле, связанное с u силой γ²,
    w - медленно меняющееся поле смещения (bias), сглаживаемое к v.

MAP-шаг обновляет (u, v) совместными проходами Гаусса-Зейделя, затем
релаксирует w. Маргинальное правдоподобие вычисляется в спектральном
приближении с

    ψ_h = (λ + αφ)² / (γ² + λ + αφ),   χ_h = 1/σ² + ψ_h

Обучение останавливается при сходимости, по исчерпании итераций или при
обнаружении пика скользящего среднего приращений правдоподобия.
"""

import logging
import threading
from collections import deque
from typing import Iterator, NamedTuple, Optional, Tuple

import numpy as np

from mrf_denoise.algorithms.base import (
    CONV_EPSILON,
    FIXED_MODE_ITERATIONS,
    IterationResult,
    MRFAlgorithm,
    Task,
    mean_abs_change,
)
from mrf_denoise.algorithms.gmrf import gauss_seidel_sweep, marginal_log_likelihood
from mrf_denoise.algorithms.params import HGMRFParams
from mrf_denoise.lattice import Lattice
from mrf_denoise.utils import safe_denom

logger = logging.getLogger(__name__)

PEAK_WINDOW = 7
PEAK_SANITY_FLOOR = -1e10


class PeakDetector:
    """
    Эвристика ранней остановки по кривой обучения.

    Хранит последние window приращений правдоподобия. Когда окно
    заполнено, сравнивает их среднее с предыдущим средним: уменьшение
    означает, что кривая прошла пик.

    Атрибуты
    --------
    window : int
        Ширина окна скользящего среднего.
    floor : float
        Предыдущее среднее должно быть выше этого порога.
    """

    def __init__(self, window: int = PEAK_WINDOW, floor: float = PEAK_SANITY_FLOOR) -> None:
        self.window = window
        self.floor = floor
        self._diffs = deque(maxlen=window)
        self._prev_likelihood: Optional[float] = None
        self._prev_average = -1e18

    def update(self, iteration: int, likelihood: float) -> bool:
        """
        Учитывает правдоподобие очередной итерации.

        Возвращает
        ----------
        bool
            True, если скользящее среднее приращений начало убывать.
        """
        if self._prev_likelihood is not None:
            self._diffs.append(likelihood - self._prev_likelihood)
        self._prev_likelihood = likelihood

        if len(self._diffs) < self.window:
            return False
        average = sum(self._diffs) / self.window
        if iteration > self.window and average < self._prev_average and self._prev_average > self.floor:
            return True
        self._prev_average = average
        return False


class HGMRFGradients(NamedTuple):
    grad_lambda: float
    grad_alpha: float
    grad_gamma_sq: float
    sigma_sq: float


def joint_sweep(lattice: Lattice,
                u: np.ndarray,
                v: np.ndarray,
                data: np.ndarray,
                p: HGMRFParams) -> None:
    """Совместный проход Гаусса-Зейделя по полям u и v (на месте)."""
    inv_sigma = 1.0 / safe_denom(p.sigma_sq)
    count = lattice.neighbor_count
    coupling = p.lambda_ + p.alpha * count
    denom_u = safe_denom(p.lambda_ + inv_sigma + p.gamma_sq + p.alpha * count)
    denom_v = safe_denom(p.lambda_ + p.gamma_sq + p.alpha * count)
    weighted_data = data * inv_sigma

    for mask in lattice.colors:
        new_u = (weighted_data + p.gamma_sq * v + p.alpha * lattice.neighbor_sum(u)) / denom_u
        u[mask] = new_u[mask]
        new_v = (coupling * u + p.alpha * lattice.neighbor_sum(v - u)) / denom_v
        v[mask] = new_v[mask]


def bias_sweep(lattice: Lattice,
               w: np.ndarray,
               v: np.ndarray,
               p: HGMRFParams) -> np.ndarray:
    """Релаксация поля смещения w к v с усреднением по соседям (на месте)."""
    denom = safe_denom(p.lambda_ + p.alpha * lattice.neighbor_count)
    return lattice.red_black_sweep(
        w, lambda field: (v + p.alpha * lattice.neighbor_sum(field)) / denom)


def spectral_terms(phi: np.ndarray, p: HGMRFParams) -> Tuple[np.ndarray, np.ndarray]:
    """Спектральные величины ψ_h и χ_h."""
    base = p.lambda_ + p.alpha * phi
    psi_h = base * base / safe_denom(p.gamma_sq + base)
    chi_h = 1.0 / safe_denom(p.sigma_sq) + psi_h
    return psi_h, chi_h


def compute_gradients(lattice: Lattice,
                      u: np.ndarray,
                      v: np.ndarray,
                      w: np.ndarray,
                      data: np.ndarray,
                      phi: np.ndarray,
                      p: HGMRFParams) -> HGMRFGradients:
    """
    Градиенты маргинального правдоподобия по λ, α, γ² и новое σ².

    Поле смещения входит в градиент по λ как γ⁴·Σw² и в градиент
    по α как γ²·Σ(w_i - w_j)².
    """
    n = lattice.size
    s2 = safe_denom(p.sigma_sq)
    u_sq = float(np.sum(u * u))
    v_sq = float(np.sum(v * v))
    w_sq = float(np.sum(w * w))
    diff_u = lattice.squared_edge_sum(u)
    diff_w = lattice.squared_edge_sum(w)
    residual_sq = float(np.sum((data - u) ** 2))

    base = p.lambda_ + p.alpha * phi
    _, chi_h = spectral_terms(phi, p)
    inv_chi = 1.0 / safe_denom(chi_h)
    t1 = 2.0 / safe_denom(base)
    t2 = 1.0 / safe_denom(p.gamma_sq + base)
    dt = t1 - t2

    gamma4 = p.gamma_sq * p.gamma_sq
    grad_lambda = (-u_sq / (2.0 * n) + gamma4 * w_sq / (2.0 * n)
                   + np.sum(inv_chi * dt) / (2.0 * n * s2))
    grad_gamma_sq = -v_sq / (2.0 * n) + np.sum(-inv_chi * t2) / (2.0 * n * s2)
    grad_alpha = (-diff_u / (2.0 * n) + p.gamma_sq * diff_w / (2.0 * n)
                  + np.sum(phi * inv_chi * dt) / (2.0 * n * s2))
    sigma_sq = residual_sq / n + np.sum(inv_chi) / n
    return HGMRFGradients(float(grad_lambda), float(grad_alpha),
                          float(grad_gamma_sq), float(sigma_sq))


def update_parameters(p: HGMRFParams, grads: HGMRFGradients) -> HGMRFParams:
    """Шаг подъёма по градиенту; возвращает новую запись с нижними границами."""
    return p.updated(
        lambda_=p.lambda_ + p.eta_lambda * grads.grad_lambda,
        alpha=p.alpha + p.eta_alpha * grads.grad_alpha,
        gamma_sq=p.gamma_sq + p.eta_gamma2 * grads.grad_gamma_sq,
        sigma_sq=grads.sigma_sq,
    ).clamped()


class HGMRF(MRFAlgorithm):
    """
    Шумоподавление иерархической GMRF с полем смещения и
    остановкой по пику правдоподобия.
    """

    params_type = HGMRFParams

    def __init__(self, param=None) -> None:
        super().__init__('HGMRF', param)

    def _likelihood(self, phi: np.ndarray, p: HGMRFParams, data: np.ndarray, u: np.ndarray) -> float:
        psi_h, chi_h = spectral_terms(phi, p)
        return marginal_log_likelihood(psi_h, chi_h, p.sigma_sq,
                                       float(np.sum((data - u) ** 2)), data.size)

    def _solve(self,
               lattice: Lattice,
               p: HGMRFParams,
               cancel: Optional[threading.Event]) -> Iterator[IterationResult]:
        data, mean = lattice.center()
        u = data.copy()
        v = data.copy()
        w = data.copy()
        phi = lattice.spectral_weights()

        yield self._report(lattice, 0, 0.0, u, mean, Task.INITIALIZING)

        if not p.is_learning:
            # Без обучения обновляется только u, как в GMRF
            sweeps = 0
            for sweeps in range(1, FIXED_MODE_ITERATIONS + 1):
                stopped = self._cancelled(cancel, lattice, sweeps, u, mean)
                if stopped is not None:
                    yield stopped
                    return
                u_old = u.copy()
                gauss_seidel_sweep(lattice, u, data, p)
                if mean_abs_change(u, u_old) < CONV_EPSILON:
                    break
            yield self._report(lattice, sweeps, self._likelihood(phi, p, data, u),
                               u, mean, Task.CONVERGED)
            return

        detector = PeakDetector()
        for iteration in range(1, p.max_iter + 1):
            stopped = self._cancelled(cancel, lattice, iteration, u, mean)
            if stopped is not None:
                yield stopped
                return
            u_old = u.copy()

            # 1. MAP-оценка (u, v)
            for _ in range(2):
                joint_sweep(lattice, u, v, data, p)
            yield self._report(lattice, iteration, 0.0, u, mean, Task.MAP_OPTIMIZATION)

            # 2. Оценка смещения w
            for _ in range(2):
                bias_sweep(lattice, w, v, p)

            # 3. Оценка параметров
            yield self._report(lattice, iteration, 0.0, u, mean, Task.PARAMETER_ESTIMATION)
            grads = compute_gradients(lattice, u, v, w, data, phi, p)
            p = update_parameters(p, grads)
            self.learned_param = p

            likelihood = self._likelihood(phi, p, data, u)
            converged = mean_abs_change(u, u_old) < CONV_EPSILON
            if iteration % 10 == 0 or iteration == p.max_iter or converged:
                logger.debug("HGMRF: λ=%.3e α=%.3e γ²=%.3e σ²=%.4f L=%.6f",
                             p.lambda_, p.alpha, p.gamma_sq, p.sigma_sq, likelihood)
                yield self._report(lattice, iteration, likelihood, u, mean, Task.STABLE)
                if converged:
                    break

            # 4. Обнаружение пика кривой обучения
            if detector.update(iteration, likelihood):
                logger.info("HGMRF: пик правдоподобия на итерации %d", iteration)
                yield self._report(lattice, iteration, likelihood, u, mean, Task.OPTIMAL_PEAK_FOUND)
                break
