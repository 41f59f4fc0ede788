"""
Score-Based Generative Models for Ocean and Climate Fields

This package implements a small framework for training and sampling
variance-exploding score-based diffusion models on gridded simulation data:
- Variance-Exploding SDE wrapped around a noise-conditional score network
- Denoising score matching with warmup, gradient clipping and EMA weights
- Reverse-time Euler-Maruyama sampling from the learned score
- CycleGAN translation between unpaired field domains

Experiments are described by a TOML file (see climagen.config) and run
through the climagen-train, climagen-sample and climagen-cyclegan
console scripts.

References:
    - Song et al., Score-Based Generative Modeling through Stochastic
      Differential Equations (ICLR 2021)
"""

import logging
import os
from typing import Optional

# Package version
__version__ = "0.1.0"

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def setup_logging(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    filename: Optional[str] = None
) -> None:
    """
    Configure package-wide logging.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO)
        format_string: Custom format string for log messages
        filename: If provided, logs are also written to this file; the
            console handler is kept
    """
    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(level=level, format=format_string, datefmt='%Y-%m-%d %H:%M:%S')
    root = logging.getLogger()
    root.setLevel(level)

    if filename:
        path = os.path.abspath(filename)
        for handler in root.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
                return

        handler = logging.FileHandler(path, mode='a')
        handler.setFormatter(logging.Formatter(format_string, datefmt='%Y-%m-%d %H:%M:%S'))
        root.addHandler(handler)


# Public API
from . import config
from . import cyclegan
from . import data
from . import nets
from . import sgm

__all__ = [
    'config',
    'cyclegan',
    'data',
    'nets',
    'sgm',
    'setup_logging',
]
