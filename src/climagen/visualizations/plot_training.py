"""
Training diagnostics and loss visualizations.

Reads the losses.txt file written by ScoreMatchingTrainer and plots the mean
and spatial score-matching losses on the train and test sets.
"""

import logging
from typing import Tuple
import numpy as np
import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def read_loss_file(loss_file: str) -> np.ndarray:
    """
    Load a loss file as an array with columns
    (epoch, mean train, spatial train, mean test, spatial test).
    """
    return np.loadtxt(loss_file, delimiter=',', skiprows=1, ndmin=2)


def plot_loss_history(
    loss_file: str,
    figsize: Tuple[int, int] = (12, 4)
) -> plt.Figure:
    """
    Plot mean and spatial losses against epoch.

    Args:
        loss_file: Path to losses.txt
        figsize: Figure size

    Returns:
        Matplotlib figure
    """
    losses = read_loss_file(loss_file)
    if losses.size == 0:
        logger.warning("Loss file %s has no epochs yet", loss_file)

    fig, axes = plt.subplots(1, 2, figsize=figsize)
    epochs = losses[:, 0] if losses.size else []

    for ax, (train_col, test_col), name in zip(axes, ((1, 3), (2, 4)), ('Mean', 'Spatial')):
        if losses.size:
            ax.plot(epochs, losses[:, train_col], 'b-', linewidth=1.5, label='Train')
            ax.plot(epochs, losses[:, test_col], 'r--', linewidth=1.5, label='Test')
            ax.legend()
        ax.set_xlabel('Epoch')
        ax.set_ylabel(r'$\mathcal{L}_{\mathrm{DSM}}$')
        ax.set_title(f'{name} Loss')
        ax.set_yscale('log')

    plt.tight_layout()
    return fig
