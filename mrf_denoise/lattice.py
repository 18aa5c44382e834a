"""
Решётка пикселей: состояние изображения и общие операторы соседства.

Содержит:
    - Класс Lattice: размеры, исходное, зашумлённое и текущее изображения
    - Центрирование (вычитание среднего зашумлённого изображения)
    - Операторы 4-связного соседства без циклического замыкания
    - Спектральные веса phi для градиентов маргинального правдоподобия
    - Эксклюзивное владение решёткой на время работы одного решателя
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import numpy as np

from mrf_denoise.utils import clamp_and_round

logger = logging.getLogger(__name__)


class LatticeBusyError(RuntimeError):
    """Решётка уже используется другим решателем."""


class Lattice:
    """
    Прямоугольная решётка пикселей в оттенках серого.

    Все поля хранятся как массивы float64 формы (height, width);
    пиксель (x, y) имеет плоский индекс y*width + x.

    Атрибуты
    --------
    width : int
        Ширина решётки.
    height : int
        Высота решётки.
    size : int
        Число пикселей n = width*height.
    original : ndarray
        Исходное (чистое) изображение, только для чтения.
    noisy : ndarray
        Наблюдаемое зашумлённое изображение, только для чтения.
    current : ndarray
        Текущая оценка в физическом диапазоне 0-255.
    neighbor_count : ndarray
        Число соседей каждого пикселя (2 в углах, 3 на краях, 4 внутри).
    """

    def __init__(self, width: int, height: int) -> None:
        """
        Инициализация пустой решётки.

        Параметры
        ---------
        width : int
            Ширина решётки (положительная).
        height : int
            Высота решётки (положительная).
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Размеры решётки должны быть положительными: {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.size = self.width * self.height
        self.shape = (self.height, self.width)

        self.original = np.zeros(self.shape, dtype=np.float64)
        self.noisy = np.zeros(self.shape, dtype=np.float64)
        self.current = np.zeros(self.shape, dtype=np.float64)
        self.has_input = False

        self.neighbor_count = self.neighbor_sum(np.ones(self.shape, dtype=np.float64))
        yy, xx = np.indices(self.shape)
        red = (xx + yy) % 2 == 0
        self._colors = (red, ~red)
        self._owner: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def from_images(cls, original: np.ndarray, noisy: np.ndarray) -> 'Lattice':
        """Создаёт решётку по паре двумерных изображений."""
        original = np.asarray(original)
        if original.ndim != 2:
            raise ValueError("Ожидается двумерное изображение в оттенках серого")
        lattice = cls(original.shape[1], original.shape[0])
        lattice.set_input(original, noisy)
        return lattice

    def set_input(self, original: np.ndarray, noisy: np.ndarray) -> None:
        """
        Копирует исходное и зашумлённое изображения в решётку.

        Параметры
        ---------
        original : ndarray
            Исходное изображение: плоский буфер длины n или массив (height, width).
        noisy : ndarray
            Зашумлённое изображение того же размера.
        """
        original = self._checked('original', original)
        noisy = self._checked('noisy', noisy)
        if self._owner is not None:
            raise LatticeBusyError(f"Нельзя менять вход во время работы {self._owner}")

        self.original = original.astype(np.float64).reshape(self.shape)
        self.noisy = noisy.astype(np.float64).reshape(self.shape)
        self.original.setflags(write=False)
        self.noisy.setflags(write=False)
        self.current = self.noisy.copy()
        self.has_input = True

    def _checked(self, name: str, image: np.ndarray) -> np.ndarray:
        """
        Проверяет форму и диапазон входного изображения.

        Принимается плоский буфер длины n или массив (height, width)
        со значениями байтов.
        """
        image = np.asarray(image)
        if image.size != self.size:
            raise ValueError(
                f"Размер {name} ({image.size}) не совпадает с размером решётки {self.size}")
        if image.ndim > 1 and image.shape != self.shape:
            raise ValueError(
                f"Форма {name} {image.shape} не совпадает с формой решётки {self.shape}")
        if not np.all((image >= 0) & (image <= 255)):
            raise ValueError(f"Значения {name} выходят за диапазон байта [0, 255]")
        return image

    @contextmanager
    def exclusive(self, owner: str) -> Iterator['Lattice']:
        """
        Захватывает решётку на время работы одного решателя.

        Исключения
        ----------
        RuntimeError
            Если вход ещё не задан.
        LatticeBusyError
            Если решётку уже использует другой решатель.
        """
        if not self.has_input:
            raise RuntimeError("Входные изображения не заданы: вызовите set_input()")
        with self._lock:
            if self._owner is not None:
                raise LatticeBusyError(f"Решётка уже используется: {self._owner}")
            self._owner = owner
        try:
            yield self
        finally:
            self._owner = None

    @property
    def busy(self) -> bool:
        return self._owner is not None

    def center(self) -> Tuple[np.ndarray, float]:
        """
        Центрирует зашумлённое изображение.

        Возвращает
        ----------
        centered : ndarray
            noisy - mean(noisy).
        mean : float
            Вычтенное среднее.
        """
        mean = float(self.noisy.mean())
        return self.noisy - mean, mean

    def publish(self, centered: np.ndarray, mean: float) -> np.ndarray:
        """Снимает центрирование и сохраняет оценку как текущую."""
        self.current = centered + mean
        return self.current

    def get_output(self) -> np.ndarray:
        """Текущая оценка, отсечённая и округлённая до uint8 формы (height, width)."""
        return clamp_and_round(self.current)

    # ------------------------------------------------------------------
    # Операторы соседства
    # ------------------------------------------------------------------

    @property
    def colors(self) -> Tuple[np.ndarray, np.ndarray]:
        """Маски шахматной раскраски (красные, чёрные) для Гаусса-Зейделя."""
        return self._colors

    @staticmethod
    def neighbor_sum(field: np.ndarray) -> np.ndarray:
        """Сумма значений 4-связных соседей каждого пикселя (без замыкания)."""
        total = np.zeros_like(field)
        total[:, 1:] += field[:, :-1]
        total[:, :-1] += field[:, 1:]
        total[1:, :] += field[:-1, :]
        total[:-1, :] += field[1:, :]
        return total

    @staticmethod
    def edge_differences(field: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Разности вдоль горизонтальных и вертикальных рёбер.

        Возвращает
        ----------
        dx : ndarray (H, W-1)
            x[y, i] - x[y, i+1].
        dy : ndarray (H-1, W)
            x[j, x] - x[j+1, x].
        """
        return field[:, :-1] - field[:, 1:], field[:-1, :] - field[1:, :]

    @classmethod
    def squared_edge_sum(cls, field: np.ndarray) -> float:
        """Сумма квадратов разностей по всем рёбрам решётки."""
        dx, dy = cls.edge_differences(field)
        return float(np.sum(dx * dx) + np.sum(dy * dy))

    def red_black_sweep(self, field: np.ndarray, rule) -> np.ndarray:
        """
        Один проход Гаусса-Зейделя в шахматном порядке (на месте).

        Пиксели одного цвета не соседствуют, поэтому каждую половину
        прохода можно обновить векторно.

        Параметры
        ---------
        field : ndarray
            Обновляемое поле.
        rule : callable
            rule(field) -> ndarray нового значения для всех пикселей.
        """
        for mask in self._colors:
            field[mask] = rule(field)[mask]
        return field

    def spectral_weights(self) -> np.ndarray:
        """
        Спектральные веса phi (аналог собственных значений лапласиана).

        phi[y, x] = 4 sin^2(pi x / 2w) + 4 sin^2(pi y / 2h)
        """
        yy, xx = np.indices(self.shape, dtype=np.float64)
        return (4.0 * np.sin(np.pi * xx / (2.0 * self.width)) ** 2
                + 4.0 * np.sin(np.pi * yy / (2.0 * self.height)) ** 2)
