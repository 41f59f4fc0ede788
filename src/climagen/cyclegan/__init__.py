"""
CycleGAN image translation between two unpaired field domains.

  - generator_loss:     LSGAN + cycle-consistency + identity loss (cyclegan/losses.py)
  - discriminator_loss: LSGAN loss on real and translated fields (cyclegan/losses.py)
  - CycleGANTrainer:    alternating updates and checkpoints (cyclegan/trainer.py)
"""

from .losses import discriminator_loss, generator_loss
from .trainer import CycleGANTrainer

__all__ = [
    'discriminator_loss',
    'generator_loss',
    'CycleGANTrainer',
]
