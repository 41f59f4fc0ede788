"""
Noise-conditional score network for gridded fields.

This module provides NoiseConditionalScoreNetwork, a small convolutional
U-Net conditioned on diffusion time through a Gaussian Fourier projection.
It predicts σ(t)·∇_x log p_t(x); VarianceExplodingSDE divides the output
by σ(t) to obtain the score.
"""

import math
from typing import Tuple
import torch
import torch.nn as nn

from ..config import ModelConfig


class GaussianFourierProjection(nn.Module):
    """
    Random Fourier features of the diffusion time.

        γ(t) = [sin(2π t W), cos(2π t W)],   W ~ N(0, scale²) fixed

    Args:
        embed_dim: Output dimension (even)
        scale:     Standard deviation of the random frequencies
    """

    def __init__(self, embed_dim: int, scale: float = 30.0):
        super().__init__()
        self.register_buffer('W', torch.randn(embed_dim // 2) * scale)

    def forward(self, t: torch.Tensor) -> torch.Tensor:
        t_proj = t.unsqueeze(-1) * self.W.unsqueeze(0) * 2 * math.pi
        return torch.cat([torch.sin(t_proj), torch.cos(t_proj)], dim=-1)


class _ConvBlock(nn.Module):
    """Conv (or upsample + conv) → add time embedding → GroupNorm → SiLU."""

    def __init__(
        self,
        in_channels: int,
        out_channels: int,
        kernel_size: int,
        embed_dim: int,
        stride: int = 1,
        upsample: bool = False,
        gnorm: bool = True,
    ):
        super().__init__()
        self.upsample = nn.Upsample(scale_factor=2, mode='nearest') if upsample else nn.Identity()
        self.conv = nn.Conv2d(
            in_channels, out_channels, kernel_size,
            stride=stride, padding=kernel_size // 2, bias=False,
        )
        self.dense = nn.Linear(embed_dim, out_channels)
        self.norm = (
            nn.GroupNorm(min(32, out_channels // 4), out_channels) if gnorm else nn.Identity()
        )
        self.act = nn.SiLU()

    def forward(self, x: torch.Tensor, embed: torch.Tensor) -> torch.Tensor:
        h = self.conv(self.upsample(x))
        h = h + self.dense(embed)[..., None, None]
        return self.act(self.norm(h))


class NoiseConditionalScoreNetwork(nn.Module):
    """
    U-Net score network with three down/up-sampling levels.

    Structure (channels at each level):
        input → 32 → 64 → 128 → 256 → 128 → 64 → 32 → output
    with skip connections between matching levels. Spatial dimensions must be
    divisible by 8.

    Args:
        noised_channels:   Number of channels of the fields
        channels:          Feature channels per level
        embed_dim:         Time embedding dimension
        shift_input:       Remove the per-channel spatial mean from the input
        shift_output:      Remove the per-channel spatial mean from the output
        mean_bypass:       Predict the spatial-mean component with a dense path
        scale_mean_bypass: Multiplier applied to the mean-bypass output
        gnorm:             Use group normalisation
        proj_kernelsize:   Kernel size of the first and last convolution
        outer_kernelsize:  Kernel size at the outer level
        middle_kernelsize: Kernel size at the middle level
        inner_kernelsize:  Kernel size at the innermost level
    """

    def __init__(
        self,
        noised_channels: int = 1,
        channels: Tuple[int, int, int, int] = (32, 64, 128, 256),
        embed_dim: int = 256,
        shift_input: bool = False,
        shift_output: bool = False,
        mean_bypass: bool = False,
        scale_mean_bypass: float = 1.0,
        gnorm: bool = True,
        proj_kernelsize: int = 3,
        outer_kernelsize: int = 3,
        middle_kernelsize: int = 3,
        inner_kernelsize: int = 3,
    ):
        super().__init__()

        self.noised_channels = noised_channels
        self.shift_input = shift_input
        self.shift_output = shift_output
        self.mean_bypass = mean_bypass
        self.scale_mean_bypass = scale_mean_bypass

        c1, c2, c3, c4 = channels

        self.embed = nn.Sequential(
            GaussianFourierProjection(embed_dim),
            nn.Linear(embed_dim, embed_dim),
            nn.SiLU(),
        )

        # --- Encoder ---
        self.down1 = _ConvBlock(noised_channels, c1, proj_kernelsize, embed_dim, gnorm=gnorm)
        self.down2 = _ConvBlock(c1, c2, outer_kernelsize, embed_dim, stride=2, gnorm=gnorm)
        self.down3 = _ConvBlock(c2, c3, middle_kernelsize, embed_dim, stride=2, gnorm=gnorm)
        self.down4 = _ConvBlock(c3, c4, inner_kernelsize, embed_dim, stride=2, gnorm=gnorm)

        # --- Decoder ---
        self.up4 = _ConvBlock(c4, c3, inner_kernelsize, embed_dim, upsample=True, gnorm=gnorm)
        self.up3 = _ConvBlock(2 * c3, c2, middle_kernelsize, embed_dim, upsample=True, gnorm=gnorm)
        self.up2 = _ConvBlock(2 * c2, c1, outer_kernelsize, embed_dim, upsample=True, gnorm=gnorm)
        self.out = nn.Conv2d(2 * c1, noised_channels, proj_kernelsize, padding=proj_kernelsize // 2)

        if mean_bypass:
            self.mean_net = nn.Sequential(
                nn.Linear(noised_channels + embed_dim, embed_dim),
                nn.SiLU(),
                nn.Linear(embed_dim, embed_dim),
                nn.SiLU(),
                nn.Linear(embed_dim, noised_channels),
            )

    @classmethod
    def from_config(cls, config: ModelConfig) -> "NoiseConditionalScoreNetwork":
        """Build the network from the [model] table of an experiment."""
        return cls(
            noised_channels=config.noised_channels,
            embed_dim=config.embed_dim,
            shift_input=config.shift_input,
            shift_output=config.shift_output,
            mean_bypass=config.mean_bypass,
            scale_mean_bypass=config.scale_mean_bypass,
            gnorm=config.gnorm,
            proj_kernelsize=config.proj_kernelsize,
            outer_kernelsize=config.outer_kernelsize,
            middle_kernelsize=config.middle_kernelsize,
            inner_kernelsize=config.inner_kernelsize,
        )

    def forward(self, x: torch.Tensor, t: torch.Tensor) -> torch.Tensor:
        """
        Predict σ(t)·score for a batch of noised fields.

        Args:
            x: Noised fields [N, C, H, W]
            t: Diffusion times [N]

        Returns:
            Tensor of shape [N, C, H, W]
        """
        if x.dim() != 4 or x.shape[1] != self.noised_channels:
            raise ValueError(
                f"x must have shape [N, {self.noised_channels}, H, W], got {tuple(x.shape)}"
            )

        if x.shape[-2] % 8 != 0 or x.shape[-1] % 8 != 0:
            raise ValueError(f"spatial dims must be divisible by 8, got {tuple(x.shape[-2:])}")

        embed = self.embed(t)
        x_mean = x.mean(dim=(-2, -1), keepdim=True)

        if self.shift_input:
            x = x - x_mean

        h1 = self.down1(x, embed)
        h2 = self.down2(h1, embed)
        h3 = self.down3(h2, embed)
        h4 = self.down4(h3, embed)

        h = self.up4(h4, embed)
        h = self.up3(torch.cat([h, h3], dim=1), embed)
        h = self.up2(torch.cat([h, h2], dim=1), embed)
        h = self.out(torch.cat([h, h1], dim=1))

        if self.shift_output:
            h = h - h.mean(dim=(-2, -1), keepdim=True)

        if self.mean_bypass:
            mean_in = torch.cat([x_mean.flatten(1), embed], dim=-1)
            h = h + self.scale_mean_bypass * self.mean_net(mean_in)[..., None, None]

        return h

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"NoiseConditionalScoreNetwork(noised_channels={self.noised_channels}, "
            f"shift_input={self.shift_input}, shift_output={self.shift_output}, "
            f"mean_bypass={self.mean_bypass})"
        )
