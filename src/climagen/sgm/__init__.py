"""
Score-Based Generative Model (SGM) components.

  - DiffusionModel:           abstract diffusion/score/marginal_prob interface (sgm/base.py)
  - VarianceExplodingSDE:     VE SDE around a score network (sgm/ve_sde.py)
  - score_matching_loss:      denoising score matching, mean/spatial split (sgm/losses.py)
  - ScoreMatchingTrainer:     training loop with EMA and checkpoints (sgm/trainer.py)
  - euler_maruyama_sampler:   reverse-time Euler-Maruyama sampler (sgm/sampler.py)
  - setup_sampler:            prior sample and time schedule (sgm/sampler.py)
"""

from .base import DiffusionModel, expand_dims
from .ve_sde import VarianceExplodingSDE
from .losses import score_matching_loss
from .trainer import ScoreMatchingTrainer
from .sampler import euler_maruyama_sampler, setup_sampler

__all__ = [
    'DiffusionModel',
    'expand_dims',
    'VarianceExplodingSDE',
    'score_matching_loss',
    'ScoreMatchingTrainer',
    'euler_maruyama_sampler',
    'setup_sampler',
]
