import numpy as np
from scipy.ndimage import uniform_filter
from typing import Tuple

# Константы SSIM для 8-битного диапазона: (0.01*255)^2, (0.03*255)^2
C1 = 6.5025
C2 = 58.5225
SSIM_WINDOW = 11


def PSNR(original: np.ndarray,
         restored: np.ndarray) -> float:
    """
    Вычисляет отношение пикового сигнала к шуму (PSNR) между изображениями.

    Аргументы:
        original (ndarray): Исходное изображение
        restored (ndarray): Восстановленное/обработанное изображение

    Возвращает:
        Значение PSNR в децибелах (dB), 100.0 для совпадающих изображений
    """

    diff = np.asarray(original, dtype=np.float64) - np.asarray(restored, dtype=np.float64)
    mse = float(np.mean(diff * diff))
    if mse < 1e-10:
        return 100.0
    return float(10.0 * np.log10(255.0 * 255.0 / mse))


def SSIM(original: np.ndarray,
         restored: np.ndarray) -> float:
    """
    Вычисляет глобальный индекс структурного сходства (SSIM).

    Средние, дисперсии и ковариация считаются по всему изображению
    (выборочные, с делителем n - 1).

    Аргументы:
        original: Исходное изображение
        restored: Восстановленное/обработанное изображение

    Возвращает:
        Значение SSIM
    """

    img1 = np.asarray(original, dtype=np.float64).ravel()
    img2 = np.asarray(restored, dtype=np.float64).ravel()
    # Для одного пикселя выборочная дисперсия вырождается
    n = max(img1.size, 2)
    m1 = img1.mean()
    m2 = img2.mean()
    d1 = img1 - m1
    d2 = img2 - m2
    s1 = np.sum(d1 * d1) / (n - 1)
    s2 = np.sum(d2 * d2) / (n - 1)
    s12 = np.sum(d1 * d2) / (n - 1)
    return float(((2 * m1 * m2 + C1) * (2 * s12 + C2))
                 / ((m1 * m1 + m2 * m2 + C1) * (s1 + s2 + C2)))


def local_ssim_map(original: np.ndarray,
                   restored: np.ndarray,
                   window_size: int = SSIM_WINDOW) -> np.ndarray:
    """
    Попиксельный SSIM в квадратном окне с повтором граничных пикселей.

    Аргументы:
        original: Исходное изображение (H, W)
        restored: Восстановленное изображение (H, W)
        window_size: Размер окна (нечётный)

    Возвращает:
        Карта локального SSIM размера (H, W)
    """

    img1 = np.asarray(original, dtype=np.float64)
    img2 = np.asarray(restored, dtype=np.float64)
    count = window_size * window_size

    def window_mean(data: np.ndarray) -> np.ndarray:
        return uniform_filter(data, size=window_size, mode='nearest')

    m1 = window_mean(img1)
    m2 = window_mean(img2)
    # Переход от смещённых моментов к выборочным (делитель count - 1)
    scale = count / (count - 1)
    s1 = (window_mean(img1 * img1) - m1 * m1) * scale
    s2 = (window_mean(img2 * img2) - m2 * m2) * scale
    s12 = (window_mean(img1 * img2) - m1 * m2) * scale

    return ((2 * m1 * m2 + C1) * (2 * s12 + C2)) / ((m1 * m1 + m2 * m2 + C1) * (s1 + s2 + C2))


def ssim_heatmap(original: np.ndarray,
                 restored: np.ndarray) -> np.ndarray:
    """
    Цветовая карта локального SSIM в формате RGBA.

    Хорошее сходство (SSIM = 1) окрашивается синим, плохое (SSIM <= 0) красным:
    R = 255*(1 - s), G = 0, B = 255*s, A = 255.

    Аргументы:
        original: Исходное изображение (H, W)
        restored: Восстановленное изображение (H, W)

    Возвращает:
        Массив uint8 формы (H, W, 4)
    """

    val = np.clip(local_ssim_map(original, restored), 0.0, 1.0)
    rgba = np.zeros(val.shape + (4,), dtype=np.uint8)
    # Приведение к uint8 отбрасывает дробную часть
    rgba[..., 0] = np.clip(255.0 * (1.0 - val), 0.0, 255.0).astype(np.uint8)
    rgba[..., 2] = np.clip(255.0 * val, 0.0, 255.0).astype(np.uint8)
    rgba[..., 3] = 255
    return rgba


def calculate_metrics(original: np.ndarray,
                      restored: np.ndarray) -> Tuple[float, float]:
    """Возвращает пару (PSNR, SSIM)."""
    return PSNR(original, restored), SSIM(original, restored)
