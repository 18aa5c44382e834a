"""
LC-MRF: марковское случайное поле с априорным распределением log-cosh

Априорная энергия:

    E_LC(x) = (λ/2)·Σ x_i² + α·Σ_{i~j} ln cosh(s·(x_i - x_j))

ln cosh - гладкая аппроксимация полной вариации: при малых разностях
ведёт себя как квадрат, при больших - как модуль, поэтому сохраняет края.
Апостериорная энергия добавляет член данных Σ(y - x)²/(2σ²).

MAP-оценка ищется градиентным спуском. Параметры λ, α, σ² оцениваются
стохастическим подъёмом по градиенту маргинального правдоподобия;
ожидания по априорному и апостериорному распределениям оцениваются
сэмплированием MALA (Metropolis-Adjusted Langevin Algorithm):

    x* = x - ε·∇E(x) + √(2ε)·ξ,   ξ ~ N(0, I)

с поправкой Метрополиса-Гастингса на несимметричность предложения.
"""

import logging
import threading
from typing import Callable, Iterator, NamedTuple, Optional, Tuple

import numpy as np

from mrf_denoise.algorithms.base import (
    CONV_EPSILON,
    FIXED_MODE_ITERATIONS,
    IterationResult,
    MRFAlgorithm,
    Task,
    finite_or_zero,
    mean_abs_change,
)
from mrf_denoise.algorithms.params import LCMRFParams
from mrf_denoise.lattice import Lattice
from mrf_denoise.utils import safe_denom

logger = logging.getLogger(__name__)

LOG2 = np.log(2.0)


def log_cosh(x: np.ndarray) -> np.ndarray:
    """Численно устойчивый ln cosh(x) = |x| + ln(1 + e^(-2|x|)) - ln 2."""
    a = np.abs(x)
    return a + np.log1p(np.exp(-2.0 * a)) - LOG2


def edge_log_cosh_sum(x: np.ndarray, s: float) -> float:
    """Σ ln cosh(s·(x_i - x_j)) по горизонтальным и вертикальным рёбрам."""
    dx, dy = Lattice.edge_differences(x)
    return float(np.sum(log_cosh(s * dx)) + np.sum(log_cosh(s * dy)))


def prior_energy(x: np.ndarray, p: LCMRFParams) -> float:
    return 0.5 * p.lambda_ * float(np.sum(x * x)) + p.alpha * edge_log_cosh_sum(x, p.s)


def posterior_energy(x: np.ndarray, data: np.ndarray, p: LCMRFParams) -> float:
    residual = data - x
    return prior_energy(x, p) + float(np.sum(residual * residual)) / (2.0 * safe_denom(p.sigma_sq))


def prior_gradient(x: np.ndarray, p: LCMRFParams) -> np.ndarray:
    """∇E_LC: λx_i + α·s·Σ_{j~i} tanh(s·(x_i - x_j))."""
    dx, dy = Lattice.edge_differences(x)
    tx = np.tanh(p.s * dx)
    ty = np.tanh(p.s * dy)
    edges = np.zeros_like(x)
    edges[:, :-1] += tx
    edges[:, 1:] -= tx
    edges[:-1, :] += ty
    edges[1:, :] -= ty
    return p.lambda_ * x + p.alpha * p.s * edges


def posterior_gradient(x: np.ndarray, data: np.ndarray, p: LCMRFParams) -> np.ndarray:
    return prior_gradient(x, p) + (x - data) / safe_denom(p.sigma_sq)


def box_muller(rng: np.random.Generator, shape: Tuple[int, ...]) -> np.ndarray:
    """Стандартный нормальный шум преобразованием Бокса-Мюллера."""
    # 1 - U лежит в (0, 1], логарифм конечен
    u1 = 1.0 - rng.random(shape)
    u2 = rng.random(shape)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def log_proposal(to: np.ndarray, frm: np.ndarray, grad_frm: np.ndarray, step: float) -> float:
    """Логарифм плотности ланжевеновского предложения q(to | frm) с точностью до константы."""
    diff = to - frm + step * grad_frm
    return -float(np.sum(diff * diff)) / (4.0 * safe_denom(step))


class MALASampler:
    """
    Сэмплер Metropolis-Adjusted Langevin для энергии E.

    Атрибуты
    --------
    energy : callable
        E(x) -> float.
    gradient : callable
        ∇E(x) -> ndarray.
    step : float
        Шаг ланжевеновского предложения ε.
    rng : numpy.random.Generator
        Явный источник случайности.
    accepted : int
        Число принятых предложений.
    proposed : int
        Общее число предложений.
    """

    def __init__(self,
                 energy: Callable[[np.ndarray], float],
                 gradient: Callable[[np.ndarray], np.ndarray],
                 step: float,
                 rng: np.random.Generator) -> None:
        self.energy = energy
        self.gradient = gradient
        self.step = step
        self.rng = rng
        self.accepted = 0
        self.proposed = 0

    def run(self, start: np.ndarray, n_steps: int) -> np.ndarray:
        """Цепочка длины n_steps из начального состояния; возвращает последнее состояние."""
        x = start.copy()
        grad = self.gradient(x)
        energy = self.energy(x)
        noise_scale = np.sqrt(2.0 * self.step)

        for _ in range(n_steps):
            star = x - self.step * grad + noise_scale * box_muller(self.rng, x.shape)
            grad_star = self.gradient(star)
            energy_star = self.energy(star)
            log_a = (-energy_star + energy
                     + log_proposal(x, star, grad_star, self.step)
                     - log_proposal(star, x, grad, self.step))
            self.proposed += 1
            # NaN в log_a даёт отказ
            if self.rng.random() <= np.exp(np.minimum(0.0, log_a)):
                x, grad, energy = star, grad_star, energy_star
                self.accepted += 1
        return x

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.proposed if self.proposed else 0.0


class SampleMoments(NamedTuple):
    """Средние по цепочкам: Σx², Σ ln cosh по рёбрам и Σ(y - x)²."""
    sq: float
    lc: float
    residual: float


def sample_moments(sampler: MALASampler,
                   start: np.ndarray,
                   n_chains: int,
                   n_steps: int,
                   s: float,
                   data: np.ndarray) -> SampleMoments:
    """Запускает n_chains независимых цепочек и усредняет их конечные состояния."""
    sq = lc = residual = 0.0
    for _ in range(n_chains):
        x = sampler.run(start, n_steps)
        sq += float(np.sum(x * x))
        lc += edge_log_cosh_sum(x, s)
        residual += float(np.sum((data - x) ** 2))
    return SampleMoments(sq / n_chains, lc / n_chains, residual / n_chains)


def monte_carlo_gradients(prior: SampleMoments,
                          posterior: SampleMoments,
                          p: LCMRFParams,
                          n: int) -> Tuple[float, float, float]:
    """
    Оценки градиентов по λ, α, σ²; нечисловые значения заменяются нулём.
    """
    with np.errstate(all='ignore'):
        grad_lambda = (posterior.sq - prior.sq) / (2.0 * n)
        grad_alpha = (posterior.lc - prior.lc) / (2.0 * n)
        grad_sigma_sq = (posterior.residual / safe_denom(2.0 * p.sigma_sq ** 2 * n)
                         - 1.0 / (2.0 * safe_denom(p.sigma_sq)))
    return finite_or_zero(grad_lambda), finite_or_zero(grad_alpha), finite_or_zero(grad_sigma_sq)


def update_parameters(p: LCMRFParams, grads: Tuple[float, float, float]) -> LCMRFParams:
    """Шаг стохастического подъёма; возвращает новую запись с нижними границами."""
    grad_lambda, grad_alpha, grad_sigma_sq = grads
    return p.updated(
        lambda_=p.lambda_ + p.eta_lambda * grad_lambda,
        alpha=p.alpha + p.eta_alpha * grad_alpha,
        sigma_sq=p.sigma_sq + p.eta_sigma2 * grad_sigma_sq,
    ).clamped()


class LCMRF(MRFAlgorithm):
    """
    Шумоподавление LC-MRF с оценкой параметров сэмплированием MALA.
    """

    params_type = LCMRFParams

    def __init__(self, param=None) -> None:
        super().__init__('LC-MRF', param)

    @staticmethod
    def _map_steps(m: np.ndarray, data: np.ndarray, p: LCMRFParams, steps: int = 2) -> np.ndarray:
        for _ in range(steps):
            m -= p.epsilon_map * posterior_gradient(m, data, p)
        return m

    def _solve(self,
               lattice: Lattice,
               p: LCMRFParams,
               cancel: Optional[threading.Event]) -> Iterator[IterationResult]:
        data, mean = lattice.center()
        m = data.copy()
        n = lattice.size
        rng = np.random.default_rng(p.seed)

        yield self._report(lattice, 0, 0.0, m, mean, Task.INITIALIZING)

        if not p.is_learning:
            iteration = 0
            for iteration in range(1, FIXED_MODE_ITERATIONS + 1):
                stopped = self._cancelled(cancel, lattice, iteration, m, mean)
                if stopped is not None:
                    yield stopped
                    return
                m_old = m.copy()
                self._map_steps(m, data, p)
                if mean_abs_change(m, m_old) < CONV_EPSILON:
                    break
                if iteration % 10 == 0:
                    yield self._report(lattice, iteration, posterior_energy(m, data, p),
                                       m, mean, Task.MAP_OPTIMIZATION)
            yield self._report(lattice, iteration, posterior_energy(m, data, p),
                               m, mean, Task.CONVERGED)
            return

        for iteration in range(1, p.max_iter + 1):
            stopped = self._cancelled(cancel, lattice, iteration, m, mean)
            if stopped is not None:
                yield stopped
                return
            m_old = m.copy()

            # 1. MAP-оценка
            self._map_steps(m, data, p)
            yield self._report(lattice, iteration, 0.0, m, mean, Task.MAP_OPTIMIZATION)

            # 2. Сэмплирование априорного распределения из нуля
            yield self._report(lattice, iteration, 0.0, m, mean, Task.MCMC_PRIOR_SAMPLING)
            prior_sampler = MALASampler(lambda x: prior_energy(x, p),
                                        lambda x: prior_gradient(x, p),
                                        p.epsilon_pri, rng)
            prior = sample_moments(prior_sampler, np.zeros_like(m),
                                   p.n_pri, p.t_hat_max, p.s, data)

            # 3. Сэмплирование апостериорного распределения из MAP-оценки
            yield self._report(lattice, iteration, 0.0, m, mean, Task.MCMC_POSTERIOR_SAMPLING)
            posterior_sampler = MALASampler(lambda x: posterior_energy(x, data, p),
                                            lambda x: posterior_gradient(x, data, p),
                                            p.epsilon_post, rng)
            posterior = sample_moments(posterior_sampler, m,
                                       p.n_post, p.t_dot_max, p.s, data)

            # 4. Оценка параметров
            yield self._report(lattice, iteration, 0.0, m, mean, Task.PARAMETER_ESTIMATION)
            grads = monte_carlo_gradients(prior, posterior, p, n)
            p = update_parameters(p, grads)
            self.learned_param = p
            logger.debug("LC-MRF: принято %.1f%% / %.1f%% предложений, λ=%.3e α=%.3e σ²=%.4f",
                         100.0 * prior_sampler.acceptance_rate,
                         100.0 * posterior_sampler.acceptance_rate,
                         p.lambda_, p.alpha, p.sigma_sq)

            converged = mean_abs_change(m, m_old) < CONV_EPSILON
            if iteration % 10 == 0 or iteration == p.max_iter or converged:
                yield self._report(lattice, iteration, posterior_energy(m, data, p),
                                   m, mean, Task.STABLE)
                if converged:
                    break
