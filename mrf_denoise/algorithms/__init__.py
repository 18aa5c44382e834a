"""
Пакет решателей MRF для шумоподавления.

Модули:
    base: Базовый класс MRFAlgorithm, отчёты IterationResult и метки Task
    params: Неизменяемые записи гиперпараметров
    gmrf: Гауссовское MRF
    hgmrf: Иерархическое гауссовское MRF с полем смещения
    lc_mrf: MRF с априорным распределением log-cosh и сэмплированием MALA
    tv_mrf: Полная вариация, метод Split-Bregman
"""

from mrf_denoise.algorithms.base import (
    CONV_EPSILON,
    FIXED_MODE_ITERATIONS,
    IterationResult,
    MRFAlgorithm,
    Task,
)
from mrf_denoise.algorithms.params import (
    GMRFParams,
    HGMRFParams,
    LCMRFParams,
    MRFParams,
    TVMRFParams,
)
from mrf_denoise.algorithms.gmrf import GMRF
from mrf_denoise.algorithms.hgmrf import HGMRF, PeakDetector
from mrf_denoise.algorithms.lc_mrf import LCMRF, MALASampler
from mrf_denoise.algorithms.tv_mrf import TVMRF

# Реестр решателей по имени; 'TV-MRF' - синоним 'rTV-MRF'
ALGORITHMS = {
    'GMRF': GMRF,
    'HGMRF': HGMRF,
    'LC-MRF': LCMRF,
    'rTV-MRF': TVMRF,
    'TV-MRF': TVMRF,
}


def get_algorithm(name: str, param=None) -> MRFAlgorithm:
    """
    Создание решателя по имени.

    Исключения
    ----------
    KeyError
        Если алгоритм с таким именем не зарегистрирован.
    """
    try:
        cls = ALGORITHMS[name]
    except KeyError:
        raise KeyError(f"Неизвестный алгоритм '{name}', доступны: {sorted(ALGORITHMS)}") from None
    return cls(param)


__all__ = [
    'ALGORITHMS',
    'CONV_EPSILON',
    'FIXED_MODE_ITERATIONS',
    'GMRF',
    'GMRFParams',
    'HGMRF',
    'HGMRFParams',
    'IterationResult',
    'LCMRF',
    'LCMRFParams',
    'MALASampler',
    'MRFAlgorithm',
    'MRFParams',
    'PeakDetector',
    'TVMRF',
    'TVMRFParams',
    'Task',
    'get_algorithm',
]
