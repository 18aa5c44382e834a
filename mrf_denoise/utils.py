"""
Численная защита для итерационных решателей.

Содержит:
    - Безопасный знаменатель (отведение от нуля с сохранением знака)
    - Отсечение и округление значений в диапазон байта
    - Диагностическую проверку целостности передачи данных
"""

from typing import Union

import numpy as np

# Минимальный модуль знаменателя
EPSILON = 1e-10

ArrayLike = Union[float, np.ndarray]


class IntegrityError(RuntimeError):
    """Нарушение целостности при передаче пиксельных данных."""


def safe_denom(value: ArrayLike) -> ArrayLike:
    """
    Отводит знаменатель от нуля, сохраняя его знак.

    Если |value| >= EPSILON, значение возвращается без изменений,
    иначе возвращается ±EPSILON. Знак нуля считается положительным.

    Параметры
    ---------
    value : float или ndarray
        Исходный знаменатель.

    Возвращает
    ----------
    float или ndarray
        Безопасный знаменатель той же формы.
    """
    arr = np.asarray(value, dtype=np.float64)
    out = np.where(arr < 0.0, np.minimum(arr, -EPSILON), np.maximum(arr, EPSILON))
    if out.ndim == 0:
        return float(out)
    return out


def clamp_and_round(value: ArrayLike) -> Union[int, np.ndarray]:
    """
    Отсекает значения в [0, 255] и округляет до ближайшего целого.

    Параметры
    ---------
    value : float или ndarray
        Вещественные значения яркости.

    Возвращает
    ----------
    int или ndarray (uint8)
        Байтовые значения.
    """
    arr = np.clip(np.asarray(value, dtype=np.float64), 0.0, 255.0)
    # np.round округляет половины к чётному, нужно от нуля
    rounded = np.floor(arr + 0.5).astype(np.uint8)
    if rounded.ndim == 0:
        return int(rounded)
    return rounded


def check_integrity(original: np.ndarray, converted: np.ndarray) -> None:
    """
    Проверяет, что перевод байтов в вещественные числа не исказил данные.

    Используется только для тестирования передачи, не в рабочем цикле.

    Параметры
    ---------
    original : ndarray
        Исходные байты.
    converted : ndarray
        Вещественное представление тех же данных.

    Исключения
    ----------
    IntegrityError
        При несовпадении размеров или целой части хотя бы одного элемента.
    """
    original = np.asarray(original).ravel()
    converted = np.asarray(converted, dtype=np.float64).ravel()
    if original.size != converted.size:
        raise IntegrityError(
            f"Несовпадение размеров при проверке целостности: "
            f"{original.size} != {converted.size}")
    restored = np.floor(converted + 0.5)
    mismatch = np.flatnonzero(restored != original.astype(np.float64))
    if mismatch.size:
        idx = int(mismatch[0])
        raise IntegrityError(
            f"Нарушение целостности: пиксель {idx} изменился при передаче "
            f"({original[idx]} -> {converted[idx]})")
