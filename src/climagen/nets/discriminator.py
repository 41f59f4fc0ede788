"""
PatchGAN discriminator for CycleGAN training.

The discriminator maps a field [N, C, H, W] to a map of per-patch
probabilities [N, 1, H', W'] that the corresponding patch is real.
"""

from typing import Sequence
import torch
import torch.nn as nn


class _PatchBlock(nn.Module):
    """4x4 conv → InstanceNorm → LeakyReLU(0.2)."""

    def __init__(self, in_channels: int, out_channels: int, stride: int):
        super().__init__()
        self.conv = nn.Sequential(
            nn.Conv2d(in_channels, out_channels, 4, stride=stride, padding=1),
            nn.InstanceNorm2d(out_channels),
            nn.LeakyReLU(0.2),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.conv(x)


class PatchDiscriminator(nn.Module):
    """
    Convolutional patch discriminator with sigmoid output.

    The first layer halves the resolution without normalisation; every
    following block halves it again, except the last which keeps it.
    A final 4x4 convolution maps to one channel of logits.

    Args:
        in_channels: Number of field channels
        features:    Channels of the successive blocks
    """

    def __init__(self, in_channels: int = 1, features: Sequence[int] = (64, 128, 256, 512)):
        super().__init__()
        if len(features) == 0:
            raise ValueError("features cannot be empty")

        self.in_channels = in_channels
        self.features = tuple(features)

        self.initial = nn.Sequential(
            nn.Conv2d(in_channels, features[0], 4, stride=2, padding=1),
            nn.LeakyReLU(0.2),
        )

        layers = []
        channel = features[0]
        for index, feature in enumerate(features[1:], start=1):
            stride = 1 if index == len(features) - 1 else 2
            layers.append(_PatchBlock(channel, feature, stride=stride))
            channel = feature
        layers.append(nn.Conv2d(channel, 1, 4, stride=1, padding=1))
        self.model = nn.Sequential(*layers)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Fields [N, C, H, W]

        Returns:
            Patch probabilities [N, 1, H', W'] in (0, 1)
        """
        return torch.sigmoid(self.model(self.initial(x)))

    def __repr__(self) -> str:
        return f"PatchDiscriminator(in_channels={self.in_channels}, features={self.features})"
