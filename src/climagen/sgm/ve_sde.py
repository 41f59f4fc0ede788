"""
Variance-Exploding SDE: concrete DiffusionModel wrapping a score network.

The forward SDE has no drift:
    dX_t = g(t) dW_t

with noise scale and diffusion coefficient
    σ(t) = σ_min (σ_max / σ_min)^t
    g(t) = σ(t) √(2 log(σ_max / σ_min))

and Gaussian transition kernel
    p(x(t) | x(0)) = N(x(0), σ(t)² I)

The network predicts σ(t)·score, so the score is recovered by dividing
its output by σ(t).
"""

import math
from typing import Tuple
import torch
import torch.nn as nn

from .base import DiffusionModel, expand_dims


class VarianceExplodingSDE(nn.Module, DiffusionModel):
    """
    Variance-Exploding SDE with a learned score.

    Args:
        sigma_max: Noise scale σ(1)
        sigma_min: Noise scale σ(0)
        net:       Network mapping (x [N, C, H, W], t [N]) → [N, C, H, W]
    """

    def __init__(self, sigma_max: float, sigma_min: float, net: nn.Module):
        super().__init__()

        if sigma_min <= 0:
            raise ValueError(f"sigma_min must be positive, got {sigma_min}")

        if sigma_max <= sigma_min:
            raise ValueError(
                f"sigma_max must be > sigma_min, got sigma_min={sigma_min}, sigma_max={sigma_max}"
            )

        self.sigma_max = float(sigma_max)
        self.sigma_min = float(sigma_min)
        self.net = net

        self._log_ratio = math.log(self.sigma_max / self.sigma_min)

    def sigma(self, t: torch.Tensor) -> torch.Tensor:
        """σ(t) = σ_min (σ_max / σ_min)^t"""
        return self.sigma_min * torch.exp(t * self._log_ratio)

    def marginal_prob(
        self,
        x0: torch.Tensor,
        t: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """VE kernel: mean x0, std σ(t)."""
        return x0, self.sigma(t)

    def diffusion(self, t: torch.Tensor) -> torch.Tensor:
        """g(t) = σ(t) √(2 log(σ_max / σ_min))"""
        return self.sigma(t) * math.sqrt(2 * self._log_ratio)

    def score(self, x: torch.Tensor, t: torch.Tensor) -> torch.Tensor:
        """s(x, t) = net(x, t) / σ(t)"""
        return self.net(x, t) / expand_dims(self.sigma(t), x.dim())

    def forward(self, x: torch.Tensor, t: torch.Tensor) -> torch.Tensor:
        return self.score(x, t)

    def extra_repr(self) -> str:
        return f"sigma_min={self.sigma_min}, sigma_max={self.sigma_max}"
