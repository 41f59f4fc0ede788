"""
Configuration dataclasses for experiments, training and sampling.

An experiment is described by a single TOML file with one table per
dataclass below:

    [experiment]  savedir, rngseed, nogpu, logging
    [data]        path, batchsize, train_fraction, crop window, channels
    [model]       VE-SDE noise levels and score network options
    [optimizer]   Adam, warmup, gradient clipping, EMA
    [training]    nepochs, freq_chckpt
    [sampling]    optional; nsamples, nsteps, eps, animate

CycleGAN experiments use [experiment], [domain_a] and [domain_b] (both
read as [data] tables) and [cyclegan]; see CycleGANParameters.

Each dataclass validates its fields in __post_init__.
"""

import os
import tomllib
from dataclasses import dataclass, field
from typing import List, Optional

import torch


def _read_toml(config_path: str) -> dict:
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_path, "rb") as f:
        return tomllib.load(f)


@dataclass
class ExperimentConfig:
    """
    Experiment-level settings.

    Attributes:
        savedir: Directory for checkpoints, loss file and figures
        rngseed: Seed for all random generators (0 leaves them unseeded)
        nogpu: If True, never use CUDA even when available
        logging: If True, also write log records to savedir/experiment.log
    """
    savedir: str = "output"
    rngseed: int = 0
    nogpu: bool = False
    logging: bool = False

    def __post_init__(self):
        """Validate experiment configuration parameters."""
        if not self.savedir:
            raise ValueError("savedir must be a non-empty path")

        if self.rngseed < 0:
            raise ValueError(f"rngseed must be non-negative, got {self.rngseed}")

    @property
    def device(self) -> torch.device:
        """Device used for training and sampling."""
        if not self.nogpu and torch.cuda.is_available():
            return torch.device('cuda')
        return torch.device('cpu')


@dataclass
class DataConfig:
    """
    Configuration for loading gridded fields.

    Attributes:
        path: Path to a .npy or .npz array of layout [N, C, H, W]
        batchsize: Mini-batch size
        train_fraction: Fraction of samples used for training, rest for testing
        i_init, i_end: Row crop window (0-based, end exclusive, None = full)
        j_init, j_end: Column crop window (0-based, end exclusive, None = full)
        channels: Channel indices to keep (None keeps all)
        standard_scaling: If True, standardise each channel with train statistics
    """
    path: str = "data/fields.npz"
    batchsize: int = 64
    train_fraction: float = 0.8
    i_init: Optional[int] = None
    i_end: Optional[int] = None
    j_init: Optional[int] = None
    j_end: Optional[int] = None
    channels: Optional[List[int]] = None
    standard_scaling: bool = True

    def __post_init__(self):
        """Validate data configuration parameters."""
        if self.batchsize <= 0:
            raise ValueError(f"batchsize must be positive, got {self.batchsize}")

        if not 0 < self.train_fraction <= 1:
            raise ValueError(f"train_fraction must be in (0, 1], got {self.train_fraction}")

        for lo, hi, name in ((self.i_init, self.i_end, 'i'), (self.j_init, self.j_end, 'j')):
            if lo is not None and lo < 0:
                raise ValueError(f"{name}_init must be non-negative, got {lo}")
            if lo is not None and hi is not None and hi <= lo:
                raise ValueError(f"{name}_end must be > {name}_init, got {name}_init={lo}, {name}_end={hi}")

        if self.channels is not None and not self.channels:
            raise ValueError("channels cannot be empty, use None to keep all channels")

    @property
    def irange(self) -> slice:
        return slice(self.i_init, self.i_end)

    @property
    def jrange(self) -> slice:
        return slice(self.j_init, self.j_end)


@dataclass
class ModelConfig:
    """
    Configuration for the Variance-Exploding SDE and its score network.

    Attributes:
        sigma_min: Noise scale at t=0
        sigma_max: Noise scale at t=1
        noised_channels: Number of channels of the modelled fields
        shift_input: Remove the per-channel spatial mean from the network input
        shift_output: Remove the spatial mean from the network output
        mean_bypass: Predict the spatial-mean component with a separate dense path
        scale_mean_bypass: Scale the mean-bypass output by this factor
        gnorm: Use group normalisation in the convolutional blocks
        proj_kernelsize: Kernel size of the input/output projections
        outer_kernelsize: Kernel size at the outer U-Net level
        middle_kernelsize: Kernel size at the middle U-Net level
        inner_kernelsize: Kernel size at the innermost U-Net level
        embed_dim: Dimension of the Gaussian Fourier time embedding
    """
    sigma_min: float = 0.01
    sigma_max: float = 50.0
    noised_channels: int = 1
    shift_input: bool = False
    shift_output: bool = False
    mean_bypass: bool = False
    scale_mean_bypass: float = 1.0
    gnorm: bool = True
    proj_kernelsize: int = 3
    outer_kernelsize: int = 3
    middle_kernelsize: int = 3
    inner_kernelsize: int = 3
    embed_dim: int = 256

    def __post_init__(self):
        """Validate model configuration parameters."""
        if self.sigma_min <= 0:
            raise ValueError(f"sigma_min must be positive, got {self.sigma_min}")

        if self.sigma_max <= self.sigma_min:
            raise ValueError(
                f"sigma_max must be > sigma_min, got sigma_min={self.sigma_min}, sigma_max={self.sigma_max}"
            )

        if self.noised_channels <= 0:
            raise ValueError(f"noised_channels must be positive, got {self.noised_channels}")

        for name in ('proj_kernelsize', 'outer_kernelsize', 'middle_kernelsize', 'inner_kernelsize'):
            k = getattr(self, name)
            if k <= 0 or k % 2 == 0:
                raise ValueError(f"{name} must be a positive odd integer, got {k}")

        if self.embed_dim <= 0 or self.embed_dim % 2 != 0:
            raise ValueError(f"embed_dim must be a positive even integer, got {self.embed_dim}")


@dataclass
class OptimizerConfig:
    """
    Configuration for the Adam optimizer, warmup and weight averaging.

    Attributes:
        learning_rate: Peak learning rate after warmup
        beta_1: Adam first-moment decay
        beta_2: Adam second-moment decay
        epsilon: Adam denominator constant
        nwarmup: Number of optimizer steps of linear warmup (0 disables warmup)
        gradnorm: Maximum global gradient norm
        ema_rate: Decay rate of the exponential moving average of the weights
    """
    learning_rate: float = 2e-4
    beta_1: float = 0.9
    beta_2: float = 0.999
    epsilon: float = 1e-8
    nwarmup: int = 5000
    gradnorm: float = 1.0
    ema_rate: float = 0.999

    def __post_init__(self):
        """Validate optimizer configuration parameters."""
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")

        for name in ('beta_1', 'beta_2'):
            beta = getattr(self, name)
            if not 0 <= beta < 1:
                raise ValueError(f"{name} must be in [0, 1), got {beta}")

        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")

        if self.nwarmup < 0:
            raise ValueError(f"nwarmup must be non-negative, got {self.nwarmup}")

        if self.gradnorm <= 0:
            raise ValueError(f"gradnorm must be positive, got {self.gradnorm}")

        if not 0 <= self.ema_rate < 1:
            raise ValueError(f"ema_rate must be in [0, 1), got {self.ema_rate}")


@dataclass
class TrainingConfig:
    """
    Configuration for the training loop.

    Attributes:
        nepochs: Number of epochs to train for
        freq_chckpt: Number of epochs between checkpoints
    """
    nepochs: int = 30
    freq_chckpt: int = 10

    def __post_init__(self):
        """Validate training configuration parameters."""
        if self.nepochs <= 0:
            raise ValueError(f"nepochs must be positive, got {self.nepochs}")

        if self.freq_chckpt <= 0:
            raise ValueError(f"freq_chckpt must be positive, got {self.freq_chckpt}")


@dataclass
class SamplingConfig:
    """
    Configuration for Euler-Maruyama sampling.

    Attributes:
        nsamples: Number of samples to draw
        nsteps: Number of points in the reverse-time schedule
        eps: Final (smallest) time of the schedule
        animate: If True, also save an animation of the sampling trajectory
    """
    nsamples: int = 5
    nsteps: int = 500
    eps: float = 1e-3
    animate: bool = False

    def __post_init__(self):
        """Validate sampling configuration parameters."""
        if self.nsamples <= 0:
            raise ValueError(f"nsamples must be positive, got {self.nsamples}")

        if self.nsteps < 2:
            raise ValueError(f"nsteps must be at least 2, got {self.nsteps}")

        if not 0 < self.eps < 1:
            raise ValueError(f"eps must be in (0, 1), got {self.eps}")


@dataclass
class Parameters:
    """
    All settings of one experiment, as read from its TOML file.
    """
    experiment: ExperimentConfig = field(default_factory=ExperimentConfig)
    data: DataConfig = field(default_factory=DataConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    sampling: Optional[SamplingConfig] = None

    def __post_init__(self):
        """Check settings that span several tables."""
        if self.data.channels is not None and len(self.data.channels) != self.model.noised_channels:
            raise ValueError(
                f"data.channels selects {len(self.data.channels)} channels, "
                f"model.noised_channels is {self.model.noised_channels}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "Parameters":
        """
        Build parameters from a nested dictionary of tables.

        Missing tables use defaults, except [sampling] which stays None.
        Unknown keys inside a table raise TypeError.
        """
        sampling = data.get("sampling")
        return cls(
            experiment=ExperimentConfig(**data.get("experiment", {})),
            data=DataConfig(**data.get("data", {})),
            model=ModelConfig(**data.get("model", {})),
            optimizer=OptimizerConfig(**data.get("optimizer", {})),
            training=TrainingConfig(**data.get("training", {})),
            sampling=SamplingConfig(**sampling) if sampling is not None else None,
        )

    @classmethod
    def load(cls, config_path: str) -> "Parameters":
        """
        Load experiment parameters from a TOML file.

        Args:
            config_path: Path to the experiment TOML file

        Returns:
            Parameters populated from the file's tables

        Raises:
            FileNotFoundError: If no file exists at config_path
        """
        return cls.from_dict(_read_toml(config_path))


@dataclass
class CycleGANConfig:
    """
    Hyperparameters of CycleGAN training.

    Attributes:
        lambda_cycle: Weight of the cycle-consistency L1 loss
        lambda_identity: Weight of the identity L1 loss
        learning_rate: Adam learning rate of generators and discriminators
        beta_1: Adam first-moment decay
        beta_2: Adam second-moment decay
        nepochs: Number of epochs to train for
        freq_chckpt: Number of epochs between checkpoints
        batchsize: Mini-batch size of the paired loader
        noise_channels: Number of noise channels fed to the generators
        generator_features: Channels per U-Net level of the generators
        discriminator_features: Channels of the discriminator blocks
    """
    lambda_cycle: float = 10.0
    lambda_identity: float = 5.0
    learning_rate: float = 2e-4
    beta_1: float = 0.5
    beta_2: float = 0.999
    nepochs: int = 100
    freq_chckpt: int = 1
    batchsize: int = 1
    noise_channels: int = 1
    generator_features: List[int] = field(default_factory=lambda: [32, 64, 128])
    discriminator_features: List[int] = field(default_factory=lambda: [64, 128, 256, 512])

    def __post_init__(self):
        """Validate CycleGAN hyperparameters."""
        for name in ('lambda_cycle', 'lambda_identity'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")

        for name in ('beta_1', 'beta_2'):
            beta = getattr(self, name)
            if not 0 <= beta < 1:
                raise ValueError(f"{name} must be in [0, 1), got {beta}")

        for name in ('nepochs', 'freq_chckpt', 'batchsize', 'noise_channels'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        for name in ('generator_features', 'discriminator_features'):
            features = getattr(self, name)
            if not features or any(f <= 0 for f in features):
                raise ValueError(f"{name} must be a non-empty list of positive integers, got {features}")


@dataclass
class CycleGANParameters:
    """
    All settings of one CycleGAN experiment, as read from its TOML file.

    domain_a and domain_b describe the two unpaired datasets; only their
    training splits are used.
    """
    experiment: ExperimentConfig = field(default_factory=ExperimentConfig)
    domain_a: DataConfig = field(default_factory=DataConfig)
    domain_b: DataConfig = field(default_factory=DataConfig)
    cyclegan: CycleGANConfig = field(default_factory=CycleGANConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "CycleGANParameters":
        """Build parameters from a nested dictionary of tables."""
        return cls(
            experiment=ExperimentConfig(**data.get("experiment", {})),
            domain_a=DataConfig(**data.get("domain_a", {})),
            domain_b=DataConfig(**data.get("domain_b", {})),
            cyclegan=CycleGANConfig(**data.get("cyclegan", {})),
        )

    @classmethod
    def load(cls, config_path: str) -> "CycleGANParameters":
        """
        Load CycleGAN parameters from a TOML file.

        Raises:
            FileNotFoundError: If no file exists at config_path
        """
        return cls.from_dict(_read_toml(config_path))
