"""
Shared utility functions for training score networks.

Provides optimizer setup, the linear warmup scheduler, the exponential
moving average of the weights and gradient norm computation.
"""

from typing import Iterable
import torch
import torch.nn as nn
from ..config import OptimizerConfig


def setup_optimizer(
    parameters: Iterable[nn.Parameter],
    optimizer_config: OptimizerConfig
) -> torch.optim.Optimizer:
    """
    Create the Adam optimizer from the optimizer configuration.

    Args:
        parameters: Model parameters to optimize
        optimizer_config: Optimizer configuration

    Returns:
        Configured optimizer
    """
    return torch.optim.Adam(
        parameters,
        lr=optimizer_config.learning_rate,
        betas=(optimizer_config.beta_1, optimizer_config.beta_2),
        eps=optimizer_config.epsilon
    )


def warmup_factor(step: int, nwarmup: int) -> float:
    """
    Learning rate multiplier min(1, step / nwarmup).

    nwarmup = 0 disables warmup.
    """
    if nwarmup == 0:
        return 1.0
    return min(1.0, step / nwarmup)


def setup_scheduler(
    optimizer: torch.optim.Optimizer,
    optimizer_config: OptimizerConfig
) -> torch.optim.lr_scheduler.LRScheduler:
    """
    Create the linear warmup scheduler.

    The scheduler must be stepped once per optimizer step. The first
    optimizer step uses learning_rate / nwarmup.

    Args:
        optimizer: Optimizer to attach scheduler to
        optimizer_config: Optimizer configuration

    Returns:
        Configured scheduler
    """
    nwarmup = optimizer_config.nwarmup
    return torch.optim.lr_scheduler.LambdaLR(
        optimizer,
        lr_lambda=lambda step: warmup_factor(step + 1, nwarmup)
    )


class ExponentialMovingAverage:
    """
    Exponential moving average of model weights.

        p_smooth ← rate · p_smooth + (1 - rate) · p

    Buffers (e.g. the fixed Fourier projection) are copied verbatim.

    Args:
        rate: Decay rate in [0, 1)
    """

    def __init__(self, rate: float):
        if not 0 <= rate < 1:
            raise ValueError(f"rate must be in [0, 1), got {rate}")
        self.rate = rate

    @torch.no_grad()
    def update(self, smooth: nn.Module, model: nn.Module) -> None:
        """Move the weights of `smooth` towards those of `model` in place."""
        for p_smooth, p in zip(smooth.parameters(), model.parameters()):
            p_smooth.mul_(self.rate).add_(p.detach(), alpha=1 - self.rate)

        for b_smooth, b in zip(smooth.buffers(), model.buffers()):
            b_smooth.copy_(b)


def compute_gradient_norm(parameters: Iterable[nn.Parameter]) -> float:
    """
    Compute L2 norm of gradients across all parameters.

    Should be called after backward() but before gradient clipping.

    Args:
        parameters: Model parameters with gradients

    Returns:
        L2 norm of all gradients
    """
    total_norm = 0.0
    for param in parameters:
        if param.grad is not None:
            total_norm += param.grad.norm().item() ** 2
    return total_norm ** 0.5
