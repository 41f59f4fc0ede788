"""
Noise-conditioned U-Net generator for CycleGAN image translation.

The generator takes a field and a noise field of the same resolution,
concatenated along the channel axis, and returns a field of the same shape
as its input. The noise makes the translation stochastic.
"""

from typing import Sequence
import torch
import torch.nn as nn


class _Down(nn.Module):
    """Strided 4x4 conv halving the resolution → InstanceNorm → LeakyReLU."""

    def __init__(self, in_channels: int, out_channels: int):
        super().__init__()
        self.block = nn.Sequential(
            nn.Conv2d(in_channels, out_channels, 4, stride=2, padding=1, bias=False),
            nn.InstanceNorm2d(out_channels),
            nn.LeakyReLU(0.2),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.block(x)


class _Up(nn.Module):
    """Transposed 4x4 conv doubling the resolution → InstanceNorm → ReLU."""

    def __init__(self, in_channels: int, out_channels: int):
        super().__init__()
        self.block = nn.Sequential(
            nn.ConvTranspose2d(in_channels, out_channels, 4, stride=2, padding=1, bias=False),
            nn.InstanceNorm2d(out_channels),
            nn.ReLU(),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.block(x)


class NoisyUNetGenerator(nn.Module):
    """
    U-Net generator G(x, z) with skip connections.

    Args:
        in_channels:    Number of field channels (input and output)
        noise_channels: Number of noise channels concatenated to the input
        features:       Channels per resolution level, outermost first

    Input height and width must be divisible by 2 ** (len(features) - 1).
    """

    def __init__(
        self,
        in_channels: int = 1,
        noise_channels: int = 1,
        features: Sequence[int] = (32, 64, 128),
    ):
        super().__init__()
        if len(features) == 0:
            raise ValueError("features cannot be empty")

        self.in_channels = in_channels
        self.noise_channels = noise_channels
        self.features = tuple(features)

        self.initial = nn.Sequential(
            nn.Conv2d(in_channels + noise_channels, features[0], 3, padding=1),
            nn.LeakyReLU(0.2),
        )
        self.downs = nn.ModuleList(
            _Down(features[i - 1], features[i]) for i in range(1, len(features))
        )

        ups = []
        channel = features[-1]
        for i in range(len(features) - 1, 0, -1):
            ups.append(_Up(channel, features[i - 1]))
            # skip concatenation doubles the channels
            channel = 2 * features[i - 1]
        self.ups = nn.ModuleList(ups)

        self.final = nn.Conv2d(channel, in_channels, 3, padding=1)

    def forward(self, x: torch.Tensor, noise: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x:     Fields [N, in_channels, H, W]
            noise: Noise [N, noise_channels, H, W]

        Returns:
            Translated fields [N, in_channels, H, W]
        """
        if x.shape[1] != self.in_channels:
            raise ValueError(f"expected {self.in_channels} channels, got {x.shape[1]}")

        if noise.shape[1] != self.noise_channels or noise.shape[-2:] != x.shape[-2:]:
            raise ValueError(
                f"noise must have shape [N, {self.noise_channels}, {x.shape[-2]}, {x.shape[-1]}], "
                f"got {tuple(noise.shape)}"
            )

        factor = 2 ** len(self.downs)
        if x.shape[-2] % factor or x.shape[-1] % factor:
            raise ValueError(f"height and width must be divisible by {factor}, got {tuple(x.shape[-2:])}")

        h = self.initial(torch.cat([x, noise], dim=1))
        skips = [h]
        for down in self.downs:
            h = down(h)
            skips.append(h)
        skips.pop()

        for up in self.ups:
            h = torch.cat([up(h), skips.pop()], dim=1)

        return self.final(h)

    def __repr__(self) -> str:
        return (
            f"NoisyUNetGenerator(in_channels={self.in_channels}, "
            f"noise_channels={self.noise_channels}, features={self.features})"
        )
