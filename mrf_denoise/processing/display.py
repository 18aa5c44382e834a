"""
Модуль вывода результатов шумоподавления на экран.

Выводит исходное, зашумлённое и восстановленное изображения,
карты локального SSIM и кривые обучения (энергия, PSNR, SSIM).
"""

import logging
from typing import Any, Iterable, Optional

import matplotlib.pyplot as plt
import numpy as np

from mrf_denoise.metrics import PSNR, SSIM

logger = logging.getLogger(__name__)


def plot_history(history: Iterable, title: Optional[str] = None, show: bool = False):
    """
    Кривые энергии, PSNR и SSIM по шагам отчётов.

    Отчёты-маркеры фаз (энергия 0.0) на графике энергии пропускаются.

    Возвращает
    ----------
    matplotlib.figure.Figure
    """
    history = list(history)
    steps = np.arange(len(history))
    with_energy = [(i, r.energy) for i, r in enumerate(history) if r.energy != 0.0]

    fig, axes = plt.subplots(1, 3, figsize=(15, 4))
    if with_energy:
        idx, energy = zip(*with_energy)
        axes[0].plot(idx, energy, marker='o', markersize=3)
    axes[0].set_title('Энергия')
    axes[1].plot(steps, [r.psnr for r in history])
    axes[1].set_title('PSNR, дБ')
    axes[2].plot(steps, [r.ssim for r in history])
    axes[2].set_title('SSIM')
    for ax in axes:
        ax.set_xlabel('шаг')
        ax.grid(True, alpha=0.3)
    if title:
        fig.suptitle(title)
    fig.tight_layout()
    if show:
        plt.show()
    return fig


def show_results(original: np.ndarray,
                 noisy: np.ndarray,
                 restored: np.ndarray,
                 initial_heatmap: Optional[np.ndarray] = None,
                 heatmap: Optional[np.ndarray] = None,
                 title: Optional[str] = None,
                 show: bool = False):
    """
    Исходное, зашумлённое и восстановленное изображения с метриками
    и, если заданы, карты локального SSIM (RGBA) под ними.

    Возвращает
    ----------
    matplotlib.figure.Figure
    """
    with_heatmaps = initial_heatmap is not None and heatmap is not None
    rows = 2 if with_heatmaps else 1
    fig, axes = plt.subplots(rows, 3, figsize=(15, 5 * rows), squeeze=False)

    panels = [
        ('Исходное', original),
        (f'Зашумлённое\nPSNR: {PSNR(original, noisy):.2f} | SSIM: {SSIM(original, noisy):.3f}', noisy),
        (f'Восстановленное\nPSNR: {PSNR(original, restored):.2f} | SSIM: {SSIM(original, restored):.3f}',
         restored),
    ]
    for ax, (caption, image) in zip(axes[0], panels):
        ax.imshow(image, cmap='gray', vmin=0, vmax=255)
        ax.set_title(caption)
        ax.axis('off')

    if with_heatmaps:
        axes[1, 0].axis('off')
        for ax, caption, rgba in ((axes[1, 1], 'SSIM до обработки', initial_heatmap),
                                  (axes[1, 2], 'SSIM после обработки', heatmap)):
            ax.imshow(rgba)
            ax.set_title(caption)
            ax.axis('off')

    if title:
        fig.suptitle(title)
    fig.tight_layout()
    if show:
        plt.show()
    return fig


class ModuleDisplay:
    """
    Модуль вывода результатов движка на экран.
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

    def show(self, title: Optional[str] = None, show: bool = True):
        """Вывод изображений и карт SSIM для текущей оценки движка."""
        engine = self.engine
        shape = engine.lattice.shape
        return show_results(engine.lattice.original,
                            engine.lattice.noisy,
                            engine.lattice.get_output(),
                            engine.get_initial_ssim_heatmap().reshape(shape + (4,)),
                            engine.get_ssim_heatmap().reshape(shape + (4,)),
                            title=title,
                            show=show)

    def show_history(self, algorithm: str, show: bool = True):
        """Кривые обучения последнего запуска алгоритма."""
        if algorithm not in self.engine.history:
            logger.warning("Нет истории для алгоритма %s", algorithm)
            return None
        return plot_history(self.engine.history[algorithm], title=algorithm, show=show)
