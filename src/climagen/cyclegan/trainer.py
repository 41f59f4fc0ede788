"""
CycleGAN trainer alternating discriminator and generator updates.

Per batch (a, b) the trainer draws a noise field and:
    1. steps both discriminators on discriminator_loss
    2. steps both generators on generator_loss, with the
       discriminators frozen

After every epoch the losses on the first batch are appended to
cyclegan_losses.txt; checkpoints hold all four networks and both
optimizers so training can be restarted.
"""

import itertools
import logging
import os
from typing import Dict, List, Optional, Tuple
import torch
import torch.nn as nn
from torch.utils.data import DataLoader
from tqdm import tqdm

from ..config import CycleGANConfig
from .losses import discriminator_loss, generator_loss

logger = logging.getLogger(__name__)

LOSS_FILE_HEADER = "#Epoch,Generator,Discriminator"


class CycleGANTrainer:
    """
    Trains two generators and two discriminators on unpaired domains.

    Args:
        gen_ab:    Generator A→B, called as gen_ab(x, noise)
        gen_ba:    Generator B→A
        dis_a:     Discriminator of domain A
        dis_b:     Discriminator of domain B
        config:    CycleGAN hyperparameters
        savedir:   Directory for the loss file and checkpoint
        device:    Computation device
        generator: Random generator for the noise fields (must live on device)
    """

    def __init__(
        self,
        gen_ab: nn.Module,
        gen_ba: nn.Module,
        dis_a: nn.Module,
        dis_b: nn.Module,
        config: CycleGANConfig,
        savedir: str,
        device: torch.device = torch.device('cpu'),
        generator: Optional[torch.Generator] = None,
    ):
        self.gen_ab = gen_ab.to(device)
        self.gen_ba = gen_ba.to(device)
        self.dis_a = dis_a.to(device)
        self.dis_b = dis_b.to(device)
        self.config = config
        self.savedir = savedir
        self.device = device
        self.generator = generator

        betas = (config.beta_1, config.beta_2)
        self.opt_gen = torch.optim.Adam(
            itertools.chain(self.gen_ab.parameters(), self.gen_ba.parameters()),
            lr=config.learning_rate,
            betas=betas,
        )
        self.opt_dis = torch.optim.Adam(
            itertools.chain(self.dis_a.parameters(), self.dis_b.parameters()),
            lr=config.learning_rate,
            betas=betas,
        )

    @property
    def checkpoint_path(self) -> str:
        return os.path.join(self.savedir, "cyclegan_checkpoint.pt")

    @property
    def loss_file(self) -> str:
        return os.path.join(self.savedir, "cyclegan_losses.txt")

    def sample_noise(self, x: torch.Tensor) -> torch.Tensor:
        """Standard normal noise [N, noise_channels, H, W] matching a batch x."""
        shape = (x.shape[0], self.config.noise_channels, *x.shape[-2:])
        return torch.randn(shape, generator=self.generator, dtype=x.dtype, device=x.device)

    def train(self, loader: DataLoader, start_epoch: int = 1) -> Dict[str, List[float]]:
        """
        Train for epochs start_epoch..nepochs.

        Args:
            loader:      DataLoader yielding (a, b) batches
            start_epoch: First epoch to run (> 1 when restarting)

        Returns:
            Dictionary with 'generator' and 'discriminator' losses per epoch
        """
        cfg = self.config

        os.makedirs(self.savedir, exist_ok=True)
        if start_epoch == 1 or not os.path.isfile(self.loss_file):
            with open(self.loss_file, "w") as f:
                f.write(LOSS_FILE_HEADER + "\n")

        history: Dict[str, List[float]] = {'generator': [], 'discriminator': []}

        for epoch in range(start_epoch, cfg.nepochs + 1):
            self._set_train(True)
            for a, b in tqdm(loader, desc=f"Epoch {epoch}/{cfg.nepochs}", leave=False):
                a, b = a.to(self.device), b.to(self.device)
                self.train_step(a, b, self.sample_noise(a))

            g_loss, d_loss = self.evaluate(loader)
            history['generator'].append(g_loss)
            history['discriminator'].append(d_loss)

            with open(self.loss_file, "a") as f:
                f.write(f"{epoch},{g_loss},{d_loss}\n")

            logger.info(
                "Epoch %d/%d  Generator loss=%.4e  Discriminator loss=%.4e",
                epoch, cfg.nepochs, g_loss, d_loss,
            )

            if epoch % cfg.freq_chckpt == 0 or epoch == cfg.nepochs:
                self.save_checkpoint(self.checkpoint_path, epoch)

        self._set_train(False)
        return history

    def train_step(self, a: torch.Tensor, b: torch.Tensor, noise: torch.Tensor) -> Tuple[float, float]:
        """
        One discriminator step followed by one generator step.

        Returns:
            (generator loss, discriminator loss) of this step
        """
        d_loss = discriminator_loss(self.gen_ab, self.gen_ba, self.dis_a, self.dis_b, a, b, noise)
        self.opt_dis.zero_grad()
        d_loss.backward()
        self.opt_dis.step()

        self.dis_a.requires_grad_(False)
        self.dis_b.requires_grad_(False)
        try:
            g_loss = generator_loss(
                self.gen_ab, self.gen_ba, self.dis_a, self.dis_b, a, b, noise,
                lambda_cycle=self.config.lambda_cycle,
                lambda_identity=self.config.lambda_identity,
            )
            self.opt_gen.zero_grad()
            g_loss.backward()
            self.opt_gen.step()
        finally:
            self.dis_a.requires_grad_(True)
            self.dis_b.requires_grad_(True)

        return g_loss.item(), d_loss.item()

    @torch.no_grad()
    def evaluate(self, loader: DataLoader) -> Tuple[float, float]:
        """
        Generator and discriminator losses on the first batch of a loader.

        Returns (nan, nan) for an empty loader.
        """
        batch = next(iter(loader), None)
        if batch is None:
            return float('nan'), float('nan')

        a, b = batch[0].to(self.device), batch[1].to(self.device)
        noise = self.sample_noise(a)
        g_loss = generator_loss(
            self.gen_ab, self.gen_ba, self.dis_a, self.dis_b, a, b, noise,
            lambda_cycle=self.config.lambda_cycle,
            lambda_identity=self.config.lambda_identity,
        )
        d_loss = discriminator_loss(self.gen_ab, self.gen_ba, self.dis_a, self.dis_b, a, b, noise)
        return g_loss.item(), d_loss.item()

    def save_checkpoint(self, path: str, epoch: int) -> None:
        """Write all four networks and both optimizer states."""
        torch.save(
            {
                'epoch': epoch,
                'gen_ab': self.gen_ab.state_dict(),
                'gen_ba': self.gen_ba.state_dict(),
                'dis_a': self.dis_a.state_dict(),
                'dis_b': self.dis_b.state_dict(),
                'opt_gen': self.opt_gen.state_dict(),
                'opt_dis': self.opt_dis.state_dict(),
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
        for name in ('gen_ab', 'gen_ba', 'dis_a', 'dis_b'):
            getattr(self, name).load_state_dict(state[name])
        self.opt_gen.load_state_dict(state['opt_gen'])
        self.opt_dis.load_state_dict(state['opt_dis'])

        logger.info("Initialised from checkpoint %s at epoch %d", path, state['epoch'])
        return state['epoch']

    def _set_train(self, mode: bool) -> None:
        for net in (self.gen_ab, self.gen_ba, self.dis_a, self.dis_b):
            net.train(mode)
