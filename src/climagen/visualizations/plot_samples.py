"""
Sample grids, sampling animations and pixel statistics.

Functions for turning batches of generated fields into images, animating
the Euler-Maruyama trajectory and comparing generated and reference data.
"""

import logging
import math
from typing import Optional, Tuple, Union
import numpy as np
import torch
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib import animation

logger = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray]


def _to_numpy(x: ArrayLike) -> np.ndarray:
    if isinstance(x, torch.Tensor):
        return x.detach().cpu().numpy()
    return np.asarray(x)


def convert_to_image(x: ArrayLike, ncols: Optional[int] = None, channel: int = 0) -> np.ndarray:
    """
    Tile one channel of a batch of fields into a single 2D image.

    Samples are laid out row by row, ncols per row; unused cells are NaN.

    Args:
        x:       Batch [N, C, H, W]
        ncols:   Number of samples per row (default: all in one row)
        channel: Channel to display

    Returns:
        Array of shape [nrows * H, ncols * W]
    """
    x = _to_numpy(x)
    if x.ndim != 4:
        raise ValueError(f"x must have shape [N, C, H, W], got {x.shape}")

    n, _, h, w = x.shape
    ncols = n if ncols is None else max(1, min(ncols, n))
    nrows = math.ceil(n / ncols)

    image = np.full((nrows * h, ncols * w), np.nan, dtype=np.float32)
    for k in range(n):
        r, c = divmod(k, ncols)
        image[r * h:(r + 1) * h, c * w:(c + 1) * w] = x[k, channel]
    return image


def save_image_grid(
    x: ArrayLike,
    path: str,
    ncols: Optional[int] = None,
    channel: int = 0,
    title: Optional[str] = None,
) -> None:
    """
    Save a tiled image of a batch of fields.

    Args:
        x:       Batch [N, C, H, W]
        path:    Output image path (format from extension)
        ncols:   Number of samples per row
        channel: Channel to display
        title:   Optional figure title
    """
    image = convert_to_image(x, ncols, channel)

    fig, ax = plt.subplots(figsize=(2 * image.shape[1] / image.shape[0] + 1, 2.5))
    im = ax.imshow(image, origin='lower')
    ax.set_xticks([])
    ax.set_yticks([])
    if title:
        ax.set_title(title)
    fig.colorbar(im, ax=ax, fraction=0.03)

    fig.savefig(path)
    plt.close(fig)
    logger.info("Saved image grid to %s", path)


def convert_to_animation(
    trajectory: ArrayLike,
    path: str,
    ncols: Optional[int] = None,
    channel: int = 0,
    fps: int = 20,
    stride: int = 1,
) -> None:
    """
    Animate a sampling trajectory and save it as a GIF.

    The last iterate is held for an extra quarter of the frame count.

    Args:
        trajectory: Iterates [T, N, C, H, W]
        path:       Output path (.gif)
        ncols:      Number of samples per row
        channel:    Channel to display
        fps:        Frames per second
        stride:     Use every stride-th iterate
    """
    trajectory = _to_numpy(trajectory)
    if trajectory.ndim != 5:
        raise ValueError(f"trajectory must have shape [T, N, C, H, W], got {trajectory.shape}")

    if stride < 1:
        raise ValueError(f"stride must be positive, got {stride}")

    frames = trajectory[::stride]
    n_frames = frames.shape[0]
    total = n_frames + n_frames // 4

    images = [convert_to_image(f, ncols, channel) for f in frames]
    vmin = float(np.nanmin(images[-1]))
    vmax = float(np.nanmax(images[-1]))

    fig, ax = plt.subplots()
    im = ax.imshow(images[0], origin='lower', vmin=vmin, vmax=vmax)
    ax.set_xticks([])
    ax.set_yticks([])
    title = ax.set_title("")

    def update(i):
        k = min(i, n_frames - 1)
        im.set_data(images[k])
        title.set_text(f"Iteration: {k * stride + 1} out of {trajectory.shape[0]}")
        return im, title

    anim = animation.FuncAnimation(fig, update, frames=total, blit=False)
    anim.save(path, writer=animation.PillowWriter(fps=fps))
    plt.close(fig)
    logger.info("Saved %d-frame animation to %s", total, path)


def plot_pixel_distribution(
    samples: ArrayLike,
    reference: Optional[ArrayLike] = None,
    channel: int = 0,
    figsize: Tuple[int, int] = (6, 4),
) -> plt.Figure:
    """
    Kernel density estimate of pixel values of generated and reference fields.

    Args:
        samples:   Generated batch [N, C, H, W]
        reference: Optional reference batch [M, C, H, W]
        channel:   Channel to compare
        figsize:   Figure size

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    sns.kdeplot(_to_numpy(samples)[:, channel].ravel(), ax=ax, label='Generated', fill=True)
    if reference is not None:
        sns.kdeplot(_to_numpy(reference)[:, channel].ravel(), ax=ax, label='Data', fill=True)

    ax.set_xlabel('Pixel value')
    ax.set_ylabel('Density')
    ax.set_title(f'Channel {channel} pixel distribution')
    ax.legend()

    plt.tight_layout()
    return fig
