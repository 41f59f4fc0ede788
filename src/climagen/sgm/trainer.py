"""
Denoising score matching trainer for image-like fields.

The trainer is model-agnostic: it takes any VarianceExplodingSDE-like
nn.Module together with a loss function returning (mean_loss, spatial_loss),
and a pair of train/test DataLoaders. Per optimizer step it:
    1. evaluates the loss on a batch and sums its components
    2. back-propagates and clips the global gradient norm
    3. steps the optimizer and the warmup scheduler
    4. updates the exponential moving average (EMA) copy of the model

After every epoch the mean and spatial losses are evaluated on the full
train and test sets and appended to losses.txt in the save directory.
Checkpoints hold both models, the optimizer and scheduler state, so a run
can be resumed where it stopped.
"""

import copy
import logging
import os
from typing import Callable, Dict, List, Optional, Tuple
import torch
import torch.nn as nn
from torch.utils.data import DataLoader
from tqdm import tqdm

from ..config import OptimizerConfig, TrainingConfig
from .training_utils import (
    ExponentialMovingAverage,
    compute_gradient_norm,
    setup_optimizer,
    setup_scheduler,
)

logger = logging.getLogger(__name__)

LOSS_FILE_HEADER = "#Epoch,Mean Train,Spatial Train,Mean Test,Spatial Test"


class ScoreMatchingTrainer:
    """
    Trains a score-based diffusion model with an EMA copy of its weights.

    Args:
        model:            Diffusion model to train (an nn.Module)
        loss_fn:          Callable (model, x0) → (mean_loss, spatial_loss)
        optimizer_config: Adam, warmup, clipping and EMA settings
        training_config:  Number of epochs and checkpoint frequency
        savedir:          Directory for losses.txt and checkpoint.pt
        device:           Computation device
        model_smooth:     Existing EMA model (default: a copy of model)
    """

    def __init__(
        self,
        model: nn.Module,
        loss_fn: Callable[[nn.Module, torch.Tensor], Tuple[torch.Tensor, torch.Tensor]],
        optimizer_config: OptimizerConfig,
        training_config: TrainingConfig,
        savedir: str,
        device: torch.device = torch.device('cpu'),
        model_smooth: Optional[nn.Module] = None,
    ):
        self.model = model.to(device)
        self.model_smooth = (
            model_smooth if model_smooth is not None else copy.deepcopy(model)
        ).to(device)
        self.loss_fn = loss_fn
        self.optimizer_config = optimizer_config
        self.training_config = training_config
        self.savedir = savedir
        self.device = device

        self.optimizer = setup_optimizer(self.model.parameters(), optimizer_config)
        self.scheduler = setup_scheduler(self.optimizer, optimizer_config)
        self.ema = ExponentialMovingAverage(optimizer_config.ema_rate)

        self.model_smooth.requires_grad_(False)

    @property
    def checkpoint_path(self) -> str:
        return os.path.join(self.savedir, "checkpoint.pt")

    @property
    def loss_file(self) -> str:
        return os.path.join(self.savedir, "losses.txt")

    def train(
        self,
        dataloaders: Tuple[DataLoader, DataLoader],
        start_epoch: int = 1,
    ) -> Dict[str, List[float]]:
        """
        Train for epochs start_epoch..nepochs.

        Args:
            dataloaders: (train_loader, test_loader) yielding [B, C, H, W] batches
            start_epoch: First epoch to run (> 1 when resuming)

        Returns:
            Dictionary with loss history:
                'mean_train', 'spatial_train', 'mean_test', 'spatial_test':
                    losses per epoch
                'grad_norm': gradient norm of the last step of each epoch
        """
        cfg = self.training_config
        train_loader, test_loader = dataloaders

        os.makedirs(self.savedir, exist_ok=True)
        if start_epoch == 1 or not os.path.isfile(self.loss_file):
            with open(self.loss_file, "w") as f:
                f.write(LOSS_FILE_HEADER + "\n")

        history: Dict[str, List[float]] = {
            'mean_train': [],
            'spatial_train': [],
            'mean_test': [],
            'spatial_test': [],
            'grad_norm': [],
        }

        for epoch in range(start_epoch, cfg.nepochs + 1):
            self.model.train()
            grad_norm = 0.0

            for batch in tqdm(train_loader, desc=f"Epoch {epoch}/{cfg.nepochs}", leave=False):
                x0 = self._unpack(batch)
                grad_norm = self.train_step(x0)

            mean_train, spatial_train = self.evaluate(train_loader)
            mean_test, spatial_test = self.evaluate(test_loader)

            history['mean_train'].append(mean_train)
            history['spatial_train'].append(spatial_train)
            history['mean_test'].append(mean_test)
            history['spatial_test'].append(spatial_test)
            history['grad_norm'].append(grad_norm)

            with open(self.loss_file, "a") as f:
                f.write(f"{epoch},{mean_train},{spatial_train},{mean_test},{spatial_test}\n")

            logger.info(
                "Epoch %d/%d  Train=(%.4e, %.4e)  Test=(%.4e, %.4e)  LR=%.2e",
                epoch, cfg.nepochs, mean_train, spatial_train, mean_test, spatial_test,
                self.scheduler.get_last_lr()[0],
            )

            if epoch % cfg.freq_chckpt == 0 or epoch == cfg.nepochs:
                self.save_checkpoint(self.checkpoint_path, epoch)

        self.model.eval()
        return history

    def train_step(self, x0: torch.Tensor) -> float:
        """
        One optimizer step on a batch.

        Args:
            x0: Clean batch [B, C, H, W]

        Returns:
            Gradient norm before clipping
        """
        mean_loss, spatial_loss = self.loss_fn(self.model, x0)
        loss = mean_loss + spatial_loss

        self.optimizer.zero_grad()
        loss.backward()
        grad_norm = compute_gradient_norm(self.model.parameters())
        nn.utils.clip_grad_norm_(self.model.parameters(), self.optimizer_config.gradnorm)
        self.optimizer.step()
        self.scheduler.step()

        self.ema.update(self.model_smooth, self.model)
        return grad_norm

    @torch.no_grad()
    def evaluate(self, loader: DataLoader) -> Tuple[float, float]:
        """
        Mean and spatial losses of the model averaged over a loader.

        Returns (nan, nan) for an empty loader.
        """
        was_training = self.model.training
        self.model.eval()

        mean_total, spatial_total, n_batches = 0.0, 0.0, 0
        for batch in loader:
            mean_loss, spatial_loss = self.loss_fn(self.model, self._unpack(batch))
            mean_total += mean_loss.item()
            spatial_total += spatial_loss.item()
            n_batches += 1

        self.model.train(was_training)

        if n_batches == 0:
            return float('nan'), float('nan')
        return mean_total / n_batches, spatial_total / n_batches

    def save_checkpoint(self, path: str, epoch: int) -> None:
        """Write model, EMA model, optimizer and scheduler state."""
        torch.save(
            {
                'epoch': epoch,
                'model': self.model.state_dict(),
                'model_smooth': self.model_smooth.state_dict(),
                'optimizer': self.optimizer.state_dict(),
                'scheduler': self.scheduler.state_dict(),
            },
            path,
        )
        logger.info("Saved checkpoint for epoch %d to %s", epoch, path)

    def load_checkpoint(self, path: str) -> int:
        """
        Restore state written by save_checkpoint.

        Returns:
            Epoch stored in the checkpoint
        """
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Checkpoint not found at {path}")

        state = torch.load(path, map_location=self.device)
        self.model.load_state_dict(state['model'])
        self.model_smooth.load_state_dict(state['model_smooth'])
        self.optimizer.load_state_dict(state['optimizer'])
        self.scheduler.load_state_dict(state['scheduler'])

        logger.info("Resumed from checkpoint %s at epoch %d", path, state['epoch'])
        return state['epoch']

    def _unpack(self, batch) -> torch.Tensor:
        # TensorDataset yields 1-tuples
        if isinstance(batch, (list, tuple)):
            batch = batch[0]
        return batch.to(self.device)
