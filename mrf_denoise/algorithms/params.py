"""
Записи гиперпараметров решателей MRF.

Каждая запись неизменяема: шаг обучения создаёт новую запись через
dataclasses.replace, поэтому запись вызывающего кода никогда не меняется.
Значения по умолчанию соответствуют настройкам исходных экспериментов.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Нижние границы гиперпараметров после каждого шага обучения
SIGMA_SQ_FLOOR = 0.1
PARAM_FLOOR = 1e-18


@dataclass(frozen=True)
class MRFParams:
    """
    Общие поля записей параметров.

    Атрибуты
    --------
    lambda_ : float
        Точность априорного распределения (диагональ матрицы точности).
    alpha : float
        Сила связи соседних пикселей.
    sigma_sq : float
        Дисперсия шума наблюдения.
    max_iter : int
        Максимальное число внешних итераций.
    is_learning : bool
        Выполнять ли оценку параметров по маргинальному правдоподобию.
    """
    lambda_: float = 1.0e-7
    alpha: float = 1.0e-4
    sigma_sq: float = 1000.0
    max_iter: int = 50
    is_learning: bool = True

    def __post_init__(self) -> None:
        if self.max_iter < 1:
            raise ValueError(f"max_iter должен быть не меньше 1: {self.max_iter}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MRFParams':
        """
        Создание записи из словаря.

        Ключ 'lambda' принимается наравне с 'lambda_'.
        """
        return cls()._replace_from(data)

    @classmethod
    def from_json(cls, file: Union[str, Path]) -> 'MRFParams':
        """Загрузка параметров из JSON-файла."""
        with open(file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь с ключом 'lambda' вместо 'lambda_'."""
        data = dataclasses.asdict(self)
        data['lambda'] = data.pop('lambda_')
        return data

    def updated(self, **changes: Any) -> 'MRFParams':
        """Новая запись с изменёнными полями."""
        return self._replace_from(changes)

    def clamped(self) -> 'MRFParams':
        """Новая запись с гиперпараметрами, поднятыми до нижних границ."""
        return dataclasses.replace(
            self,
            lambda_=max(PARAM_FLOOR, self.lambda_),
            alpha=max(PARAM_FLOOR, self.alpha),
            sigma_sq=max(SIGMA_SQ_FLOOR, self.sigma_sq),
        )

    def _replace_from(self, data: Dict[str, Any]) -> 'MRFParams':
        changes = dict(data)
        if 'lambda' in changes:
            changes['lambda_'] = changes.pop('lambda')
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Неизвестные параметры для {type(self).__name__}: {unknown}")
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class GMRFParams(MRFParams):
    """
    Параметры GMRF.

    Атрибуты
    --------
    eta_lambda : float
        Скорость обучения lambda.
    eta_alpha : float
        Скорость обучения alpha.
    """
    eta_lambda: float = 1.0e-12
    eta_alpha: float = 5.0e-7


@dataclass(frozen=True)
class HGMRFParams(MRFParams):
    """
    Параметры иерархической GMRF.

    Атрибуты
    --------
    gamma_sq : float
        Сила связи наблюдаемого поля u с латентным гладким полем v.
    eta_lambda, eta_alpha, eta_gamma2 : float
        Скорости обучения соответствующих гиперпараметров.
    """
    max_iter: int = 100
    gamma_sq: float = 1.0e-3
    eta_lambda: float = 1.0e-12
    eta_alpha: float = 5.0e-8
    eta_gamma2: float = 5.0e-8

    def clamped(self) -> 'HGMRFParams':
        base = super().clamped()
        return dataclasses.replace(base, gamma_sq=max(PARAM_FLOOR, base.gamma_sq))


@dataclass(frozen=True)
class LCMRFParams(MRFParams):
    """
    Параметры LC-MRF (априорное распределение log-cosh).

    Атрибуты
    --------
    s : float
        Масштаб (крутизна) log-cosh.
    epsilon_map : float
        Шаг градиентного спуска MAP-оценки.
    epsilon_pri, epsilon_post : float
        Шаги ланжевеновских предложений MALA для априорного и
        апостериорного распределений.
    eta_lambda, eta_alpha, eta_sigma2 : float
        Скорости обучения.
    n_pri, n_post : int
        Число независимых цепочек MCMC.
    t_hat_max, t_dot_max : int
        Длины цепочек для априорного и апостериорного распределений.
    seed : Optional[int]
        Зерно генератора случайных чисел сэмплера.
    """
    alpha: float = 5.0e-3
    sigma_sq: float = 10.0
    s: float = 30.0
    epsilon_map: float = 1.0
    epsilon_pri: float = 1.0e-4
    epsilon_post: float = 1.0e-4
    eta_lambda: float = 1.0e-14
    eta_alpha: float = 5.0e-8
    eta_sigma2: float = 1.0
    n_pri: int = 5
    n_post: int = 5
    t_hat_max: int = 10
    t_dot_max: int = 10
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        for name in ('n_pri', 'n_post', 't_hat_max', 't_dot_max'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} должен быть не меньше 1")
        for name in ('epsilon_map', 'epsilon_pri', 'epsilon_post'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} должен быть положительным")


@dataclass(frozen=True)
class TVMRFParams(MRFParams):
    """
    Параметры rTV-MRF (Split-Bregman).

    Атрибуты
    --------
    alpha : float
        Вес полной вариации mu (порог мягкого сжатия).
    """
    alpha: float = 0.5
    sigma_sq: float = 100.0
    is_learning: bool = False
