"""
Visualization utilities for generated fields and training diagnostics.

This package provides plotting functions organized by purpose:
  - plot_samples: Sample grids, sampling animations, pixel distributions
  - plot_training: Loss curves from the trainer's loss file

To apply the package's plot styling, call:
    from climagen.visualizations import setup_publication_style
    setup_publication_style()
"""

from ._style import setup_publication_style
from .plot_samples import (
    convert_to_image,
    save_image_grid,
    convert_to_animation,
    plot_pixel_distribution,
)
from .plot_training import read_loss_file, plot_loss_history

__all__ = [
    'setup_publication_style',
    'convert_to_image',
    'save_image_grid',
    'convert_to_animation',
    'plot_pixel_distribution',
    'read_loss_file',
    'plot_loss_history',
]
