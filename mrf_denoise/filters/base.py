"""
Базовый класс фильтров аддитивного шума

Фильтр прибавляет к байтовому изображению случайный шум из собственного
генератора, после чего отсекает и округляет результат обратно в байты.
"""

import abc
from typing import Optional, Tuple

import numpy as np

from mrf_denoise.utils import clamp_and_round


class FilterBase(abc.ABC):
    """
    Абстрактный фильтр аддитивного шума.

    Атрибуты:
        param: Параметр шума (СКО, амплитуда и т.п.)
        code (str): Короткое имя фильтра в описании
        seed (int | None): Зерно генератора
        rng (numpy.random.Generator): Генератор шума
    """

    code = ''

    def __init__(self, param, seed: Optional[int] = None) -> None:
        self.param = param
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def description(self) -> str:
        """Закодированное название фильтра и его параметр, например |gaussiannoise_5"""
        return f"|{self.code}_{self.param}"

    @abc.abstractmethod
    def sample(self, shape: Tuple[int, ...]) -> np.ndarray:
        """Шум заданной формы."""

    def filter(self, image: np.ndarray) -> np.ndarray:
        """
        Применение шума к изображению.

        Аргументы:
            image: Изображение в оттенках серого со значениями байтов

        Возвращает:
            Зашумленное изображение uint8 той же формы
        """
        image = np.asarray(image)
        if image.size and (image.min() < 0 or image.max() > 255):
            raise ValueError("Значения изображения выходят за диапазон байта [0, 255]")
        noisy = image.astype(np.float64) + self.sample(image.shape)
        return np.asarray(clamp_and_round(noisy), dtype=np.uint8).reshape(image.shape)
