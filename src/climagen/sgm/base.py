"""
Abstract interface for score-based diffusion models.

DiffusionModel is the contract between a trained model and the code that
trains or samples it. It has exactly three operations:
  - diffusion:     diffusion coefficient g(t) of the forward SDE
  - score:         estimated score ∇_x log p_t(x)
  - marginal_prob: mean and standard deviation of p(x(t) | x(0))

Concrete variants:
    DiffusionModel
        └── VarianceExplodingSDE  (sgm/ve_sde.py)

Shape conventions (PyTorch, batch first):
    x:  [N, C, H, W]
    t:  [N]
    g, std: [N]
"""

from abc import ABC, abstractmethod
from typing import Tuple
import torch


def expand_dims(v: torch.Tensor, ndim: int) -> torch.Tensor:
    """
    Reshape a per-sample vector [N] to [N, 1, ..., 1] with ndim dimensions.

    Used to broadcast per-sample coefficients (g, σ) along channel and
    spatial dimensions.

    Args:
        v:    Tensor of shape [N]
        ndim: Number of dimensions of the target tensor

    Returns:
        View of v with shape [N] + [1] * (ndim - 1)
    """
    if v.dim() != 1:
        raise ValueError(f"expected a 1D per-sample tensor, got shape {tuple(v.shape)}")
    return v.view(-1, *([1] * (ndim - 1)))


class DiffusionModel(ABC):
    """
    Abstract score-based diffusion model.

    Implementations are free to be nn.Modules (VarianceExplodingSDE) or plain
    objects with analytic coefficients (as in the test suite). The sampler
    and the score-matching loss only rely on the three methods below.
    """

    @abstractmethod
    def diffusion(self, t: torch.Tensor) -> torch.Tensor:
        """
        Diffusion coefficient g(t) of the forward SDE.

        Args:
            t: Times [N]

        Returns:
            g(t) [N]
        """

    @abstractmethod
    def score(self, x: torch.Tensor, t: torch.Tensor) -> torch.Tensor:
        """
        Score estimate s(x, t) ≈ ∇_x log p_t(x).

        Args:
            x: Noised state [N, C, H, W]
            t: Times [N]

        Returns:
            Score with the shape of x
        """

    @abstractmethod
    def marginal_prob(
        self,
        x0: torch.Tensor,
        t: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Mean and standard deviation of the transition kernel p(x(t) | x(0)).

        Args:
            x0: Clean state [N, C, H, W]
            t:  Times [N]

        Returns:
            (mean with the shape of x0, std [N])
        """
