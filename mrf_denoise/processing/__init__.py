"""
Пакет внешнего интерфейса движка шумоподавления.

Модули:
    core: Класс DenoiseEngine
    reader: Загрузка и сохранение изображений
    tables: Истории итераций и сравнения в таблицах pandas
    display: Графики и карты SSIM
"""

from mrf_denoise.processing.core import DenoiseEngine, RunSummary

__all__ = ['DenoiseEngine', 'RunSummary']
