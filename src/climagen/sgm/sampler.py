"""
Reverse-time Euler-Maruyama sampler for score-based diffusion models.

For a drift-free forward SDE dX = g(t) dW, the reverse-time SDE is
    dX = -g(t)² ∇_x log p_t(X) dt + g(t) dW̄

Integrating it from t=1 down to t=ε with a uniform step Δt gives, per step:
    mean_x ← x + g(t)² s(x, t) Δt
    x      ← mean_x + g(t) √Δt z,    z ~ N(0, I)

The noise-free mean_x of the last step is returned as the sample.

The sampler only needs a DiffusionModel (diffusion, score, marginal_prob).
All randomness is drawn from an explicitly passed torch.Generator, so two
calls with equally seeded generators give identical samples.
"""

import logging
from typing import Optional, Sequence, Tuple, Union
import torch
from tqdm import tqdm

from .base import DiffusionModel, expand_dims

logger = logging.getLogger(__name__)


def _validate_schedule(time_steps: torch.Tensor, dt: float) -> None:
    if time_steps.dim() != 1:
        raise ValueError(f"time_steps must be 1D, got shape {tuple(time_steps.shape)}")

    if time_steps.numel() == 0:
        raise ValueError("time_steps cannot be empty")

    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")

    if time_steps.numel() > 1 and not bool(torch.all(time_steps[1:] < time_steps[:-1])):
        raise ValueError("time_steps must be strictly decreasing")


@torch.no_grad()
def euler_maruyama_sampler(
    model: DiffusionModel,
    init_x: torch.Tensor,
    time_steps: Union[torch.Tensor, Sequence[float]],
    dt: float,
    generator: Optional[torch.Generator] = None,
    return_trajectory: bool = False,
    show_progress: bool = False,
) -> Union[torch.Tensor, Tuple[torch.Tensor, torch.Tensor]]:
    """
    Draw samples by integrating the reverse-time SDE with Euler-Maruyama.

    Args:
        model:             Diffusion model supplying diffusion and score
        init_x:            Samples from the prior at time_steps[0] [N, C, H, W]
        time_steps:        Strictly decreasing times, typically linspace(1, ε, n)
        dt:                Positive step size, time_steps[0] - time_steps[1]
        generator:         Random generator for the injected noise
                           (None uses torch's default generator)
        return_trajectory: If True, also return mean_x after every step
        show_progress:     If True, display a progress bar

    Returns:
        Final noise-free estimate mean_x with the shape of init_x, or
        (mean_x, trajectory [len(time_steps), N, C, H, W]) if return_trajectory.

    Raises:
        ValueError: If time_steps is empty or not decreasing, or dt <= 0

    Notes:
        A schedule with a single time has no integration interval: no step
        is taken, the model is not evaluated and a copy of init_x is returned.
    """
    time_steps = torch.as_tensor(time_steps, device=init_x.device)
    if not time_steps.is_floating_point():
        time_steps = time_steps.float()
    _validate_schedule(time_steps, dt)

    x = mean_x = init_x.clone()
    n_samples = x.shape[0]
    sqrt_dt = dt ** 0.5

    if time_steps.numel() == 1:
        logger.warning("Single-point time schedule, returning init_x unchanged")
        if return_trajectory:
            return mean_x, mean_x.unsqueeze(0)
        return mean_x

    trajectory = []

    for time_step in tqdm(time_steps, desc="Euler-Maruyama Sampling", disable=not show_progress):
        # the schedule keeps its own precision, only per-step times take x.dtype
        batch_time_step = time_step.to(x.dtype).repeat(n_samples)
        g = expand_dims(model.diffusion(batch_time_step), x.dim())
        score = model.score(x, batch_time_step)

        mean_x = x + g ** 2 * score * dt
        z = torch.randn(x.shape, generator=generator, dtype=x.dtype, device=x.device)
        x = mean_x + sqrt_dt * g * z

        if return_trajectory:
            trajectory.append(mean_x)

    logger.info(
        "Euler-Maruyama: generated %d samples of shape %s with %d steps",
        n_samples, tuple(init_x.shape[1:]), time_steps.numel(),
    )

    if return_trajectory:
        return mean_x, torch.stack(trajectory)
    return mean_x


def setup_sampler(
    model: DiffusionModel,
    shape: Tuple[int, ...],
    num_images: int = 5,
    num_steps: int = 500,
    eps: float = 1e-3,
    device: Optional[torch.device] = None,
    generator: Optional[torch.Generator] = None,
) -> Tuple[torch.Tensor, float, torch.Tensor]:
    """
    Build the inputs of euler_maruyama_sampler.

    The prior sample is init_x = σ(1) z with z ~ N(0, I), where σ(1) is the
    model's marginal standard deviation at t=1.

    Args:
        model:      Diffusion model supplying marginal_prob
        shape:      Per-sample shape (C, H, W)
        num_images: Number of samples N
        num_steps:  Number of points of the time schedule (>= 2)
        eps:        Final time of the schedule, in (0, 1)
        device:     Device holding the returned tensors (default: CPU)
        generator:  Random generator for z (must live on `device`)

    Returns:
        (time_steps [num_steps], dt, init_x [N, *shape])
    """
    if num_images < 1:
        raise ValueError(f"num_images must be positive, got {num_images}")

    if num_steps < 2:
        raise ValueError(f"num_steps must be at least 2, got {num_steps}")

    if not 0 < eps < 1:
        raise ValueError(f"eps must be in (0, 1), got {eps}")

    device = device if device is not None else torch.device('cpu')

    t = torch.ones(num_images, device=device)
    init_z = torch.randn((num_images, *shape), generator=generator, device=device)
    with torch.no_grad():
        _, sigma_1 = model.marginal_prob(torch.zeros_like(init_z), t)
    init_x = expand_dims(sigma_1, init_z.dim()) * init_z

    time_steps = torch.linspace(1.0, eps, num_steps, device=device)
    dt = (time_steps[0] - time_steps[1]).item()

    return time_steps, dt, init_x
