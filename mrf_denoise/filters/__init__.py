"""
Пакет фильтров для синтеза зашумлённых изображений.

Модули:
    base: Базовый класс FilterBase
    noise: Фильтры шума (Gaussian, Uniform)
"""

from mrf_denoise.filters.base import FilterBase
from mrf_denoise.filters.noise import GaussianNoise, UniformNoise

__all__ = [
    'FilterBase',
    'GaussianNoise',
    'UniformNoise',
]
