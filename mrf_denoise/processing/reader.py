"""
Модуль загрузки изображений в движок шумоподавления.

Возможности:
    - Загрузить одно изображение в оттенках серого.
    - Сохранить восстановленное изображение.
    - Загрузить пару (исходное, зашумлённое) и передать её в движок.
"""
import logging
import os
from pathlib import Path
from typing import Any, Tuple, Union

import cv2 as cv
import numpy as np

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def imread(path: PathLike) -> np.ndarray:
    """
    Загрузка изображения в оттенках серого.

    Параметры
    ---------
    path : str или Path
        Путь к файлу изображения.

    Возвращает
    ----------
    ndarray (H, W) uint8
        Изображение.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Файл не найден: {path}")
    image = cv.imread(str(path), cv.IMREAD_GRAYSCALE)
    if image is None:
        raise ValueError(f"Не удалось загрузить изображение: {path}")
    return image


def imwrite(path: PathLike, image: np.ndarray) -> None:
    """Сохранение изображения uint8; родительская директория создаётся при необходимости."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv.imwrite(str(path), np.asarray(image, dtype=np.uint8)):
        raise ValueError(f"Не удалось сохранить изображение: {path}")
    logger.debug("Изображение сохранено: %s", path)


def load_pair(original_path: PathLike, noisy_path: PathLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Загрузка пары (исходное, зашумлённое) одинакового размера.

    Исключения
    ----------
    ValueError
        Если размеры изображений не совпадают.
    """
    original = imread(original_path)
    noisy = imread(noisy_path)
    if original.shape != noisy.shape:
        raise ValueError(
            f"Размеры изображений не совпадают: {original.shape} и {noisy.shape}")
    return original, noisy


class ModuleReader:
    """
    Модуль загрузки изображений в движок.
    """

    def __init__(self, engine_instance: Any) -> None:
        """
        Инициализация.

        Параметры
        ---------
        engine_instance : Any
            Ссылка на объект DenoiseEngine.
        """
        self.engine = engine_instance

    def read_pair(self, original_path: PathLike, noisy_path: PathLike) -> None:
        """Загрузка пары изображений и передача её в решётку движка."""
        original, noisy = load_pair(original_path, noisy_path)
        self.engine.set_input(original, noisy)
        logger.info("Загружена пара %s / %s", original_path, noisy_path)

    def save_output(self, path: PathLike) -> None:
        """Сохранение текущей оценки движка."""
        imwrite(path, self.engine.lattice.get_output())
