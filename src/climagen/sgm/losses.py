"""
Denoising score matching loss for image-like fields.

Implements the continuous-time DSM objective of Song et al. (ICLR 2021),
Eq. 7, weighted by λ(t) = σ(t)²:

    L = E_t E_{x0} E_z || σ(t) s_θ(x0 + σ(t) z, t) + z ||²,   t ~ U(ε, 1)

The residual r = z + σ s_θ is split into its per-channel spatial mean and
the deviation from that mean. Both parts are reported separately so that
the large-scale (mean) and small-scale (spatial) skill of the score network
can be tracked independently; the training objective is their sum.
"""

from typing import Optional, Tuple
import torch

from .base import DiffusionModel, expand_dims


def score_matching_loss(
    model: DiffusionModel,
    x0: torch.Tensor,
    eps: float = 1e-5,
    generator: Optional[torch.Generator] = None,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Denoising score matching loss, split into mean and spatial components.

    Args:
        model:     Diffusion model (marginal_prob and score)
        x0:        Clean batch [N, C, H, W]
        eps:       Smallest diffusion time sampled
        generator: Optional random generator for t and z

    Returns:
        (mean_loss, spatial_loss), scalars averaged over the batch
    """
    if x0.dim() < 3:
        raise ValueError(f"x0 must be [N, C, ...] with spatial dims, got shape {tuple(x0.shape)}")

    n = x0.shape[0]
    spatial_dims = tuple(range(2, x0.dim()))
    sample_dims = tuple(range(1, x0.dim()))

    t = torch.rand(n, generator=generator, dtype=x0.dtype, device=x0.device) * (1 - eps) + eps
    z = torch.randn(x0.shape, generator=generator, dtype=x0.dtype, device=x0.device)

    mean_t, std_t = model.marginal_prob(x0, t)
    std_t = expand_dims(std_t, x0.dim())
    x_t = mean_t + std_t * z

    score = model.score(x_t, t)
    residual = z + std_t * score

    residual_mean = residual.mean(dim=spatial_dims, keepdim=True)
    residual_spatial = residual - residual_mean

    # Sum over C, H, W; the mean part is counted once per grid point.
    n_points = residual.shape[2:].numel()
    mean_loss = (residual_mean ** 2).sum(dim=sample_dims) * n_points
    spatial_loss = (residual_spatial ** 2).sum(dim=sample_dims)

    return mean_loss.mean(), spatial_loss.mean()
