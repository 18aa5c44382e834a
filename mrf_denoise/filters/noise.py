import numpy as np
from typing import Optional, Tuple

from .base import FilterBase


class GaussianNoise(FilterBase):
    """
    Фильтр аддитивного гауссовского шума.

    Результат округляется и отсекается в диапазон [0, 255].

    Атрибуты:
        param (float): Стандартное отклонение гауссовского шума
    """

    code = 'gaussiannoise'

    def __init__(self, param: float, seed: Optional[int] = None) -> None:
        """
        Инициализация фильтра гауссовского шума.

        Аргументы:
            param: Стандартное отклонение шума (должно быть положительным)
            seed: Зерно генератора случайных чисел
        """
        if param <= 0:
            raise ValueError("Стандартное отклонение должно быть положительным")
        super().__init__(param, seed)

    def sample(self, shape: Tuple[int, ...]) -> np.ndarray:
        return self.rng.normal(0.0, self.param, shape)


class UniformNoise(FilterBase):
    """
    Фильтр равномерного целочисленного шума.

    К каждому пикселю добавляется целое число из [-param, param]
    (дисперсия ((2a + 1)^2 - 1) / 12).

    Атрибуты:
        param (int): Амплитуда шума
    """

    code = 'uniformnoise'

    def __init__(self, param: int, seed: Optional[int] = None) -> None:
        if param < 0:
            raise ValueError("Амплитуда шума должна быть неотрицательной")
        super().__init__(int(param), seed)

    def sample(self, shape: Tuple[int, ...]) -> np.ndarray:
        return self.rng.integers(-self.param, self.param, size=shape, endpoint=True)
