"""
Neural network architectures.

  - GaussianFourierProjection: random Fourier features of diffusion time
  - NoiseConditionalScoreNetwork: time-conditioned convolutional U-Net
  - NoisyUNetGenerator: noise-conditioned U-Net for CycleGAN translation
  - PatchDiscriminator: PatchGAN discriminator with sigmoid output
"""

from .score_net import GaussianFourierProjection, NoiseConditionalScoreNetwork
from .generator import NoisyUNetGenerator
from .discriminator import PatchDiscriminator

__all__ = [
    'GaussianFourierProjection',
    'NoiseConditionalScoreNetwork',
    'NoisyUNetGenerator',
    'PatchDiscriminator',
]
