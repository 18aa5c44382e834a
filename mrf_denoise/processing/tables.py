"""
Модуль выгрузки истории итераций и сравнения алгоритмов в таблицы.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import pandas as pd

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ['iteration', 'energy', 'psnr', 'ssim', 'task']
COMPARISON_COLUMNS = ['algorithm', 'iterations', 'energy', 'psnr', 'ssim', 'time', 'task']


def history_to_frame(history: Iterable) -> pd.DataFrame:
    """
    История отчётов IterationResult в виде таблицы.

    Метки фаз хранятся строками.
    """
    rows = [(r.iteration, r.energy, r.psnr, r.ssim, str(r.task)) for r in history]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def save_history(history: Iterable, path: Union[str, Path]) -> pd.DataFrame:
    """Сохраняет историю в CSV и возвращает таблицу."""
    frame = history_to_frame(history)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    logger.info("История сохранена: %s (%d строк)", path, len(frame))
    return frame


def comparison_frame(summaries: Dict[str, Any]) -> pd.DataFrame:
    """
    Сводная таблица сравнения алгоритмов.

    Параметры
    ---------
    summaries : dict
        Название алгоритма -> RunSummary.
    """
    data = {}
    for name, summary in summaries.items():
        data.setdefault('algorithm', []).append(name)
        data.setdefault('iterations', []).append(summary.iterations)
        data.setdefault('energy', []).append(summary.energy)
        data.setdefault('psnr', []).append(summary.psnr)
        data.setdefault('ssim', []).append(summary.ssim)
        data.setdefault('time', []).append(summary.time)
        data.setdefault('task', []).append(str(summary.task))
    return pd.DataFrame(data, columns=COMPARISON_COLUMNS)


class ModuleData:
    """
    Модуль выгрузки результатов движка в таблицы.
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

    def get_history(self, algorithm: str) -> pd.DataFrame:
        """История последнего запуска алгоритма."""
        return history_to_frame(self.engine.history[algorithm])

    def get_table(self, table_path: Union[str, Path]) -> pd.DataFrame:
        """Сохраняет истории всех запусков в один CSV с колонкой 'algorithm'."""
        frames = []
        for name, history in self.engine.history.items():
            frame = history_to_frame(history)
            frame.insert(0, 'algorithm', name)
            frames.append(frame)
        if frames:
            table = pd.concat(frames, ignore_index=True)
        else:
            table = pd.DataFrame(columns=['algorithm'] + HISTORY_COLUMNS)
        table_path = Path(table_path)
        table_path.parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(table_path, index=False)
        return table
