"""
Шумоподавление изображений в оттенках серого марковскими случайными полями.

Пакеты и модули:
    algorithms: Решатели GMRF, HGMRF, LC-MRF, rTV-MRF
    filters: Синтез зашумлённых изображений
    processing: Движок DenoiseEngine, ввод-вывод, таблицы, графики
    lattice: Состояние решётки и операторы соседства
    metrics: PSNR, SSIM, карты локального SSIM
    utils: Численная защита
"""

from mrf_denoise.algorithms import (
    GMRF,
    HGMRF,
    LCMRF,
    TVMRF,
    GMRFParams,
    HGMRFParams,
    IterationResult,
    LCMRFParams,
    Task,
    TVMRFParams,
)
from mrf_denoise.lattice import Lattice, LatticeBusyError
from mrf_denoise.processing import DenoiseEngine
from mrf_denoise.utils import IntegrityError

__version__ = '0.1.0'

__all__ = [
    'DenoiseEngine',
    'GMRF',
    'GMRFParams',
    'HGMRF',
    'HGMRFParams',
    'IntegrityError',
    'IterationResult',
    'LCMRF',
    'LCMRFParams',
    'Lattice',
    'LatticeBusyError',
    'TVMRF',
    'TVMRFParams',
    'Task',
]
