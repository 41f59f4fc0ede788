"""Pytest configuration and shared fixtures."""
import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
import torch

from climagen.nets import NoiseConditionalScoreNetwork, NoisyUNetGenerator, PatchDiscriminator
from climagen.sgm import VarianceExplodingSDE
from fixtures.models import GaussianVEModel, LinearScoreModel


@pytest.fixture
def generator():
    """
    Provide a seeded CPU random generator.

    Returns:
        torch.Generator: Generator seeded with 1234.
    """
    return torch.Generator().manual_seed(1234)


@pytest.fixture
def identity_model():
    """Model with zero diffusion and zero score: sampling is a no-op."""
    return LinearScoreModel(g=0.0, slope=0.0)


@pytest.fixture
def gaussian_model():
    """VE model with the exact score of a point mass at zero."""
    return GaussianVEModel(sigma_min=0.01, sigma_max=10.0)


@pytest.fixture
def small_ve_model():
    """
    Provide a small VE SDE with a narrow score network.

    Returns:
        VarianceExplodingSDE: Model for single-channel 8x8 fields.
    """
    torch.manual_seed(0)
    net = NoiseConditionalScoreNetwork(
        noised_channels=1,
        channels=(8, 8, 16, 16),
        embed_dim=16,
    )
    return VarianceExplodingSDE(sigma_max=5.0, sigma_min=0.01, net=net)


@pytest.fixture
def fields_file(tmp_path):
    """
    Write a small random dataset of 2-channel 16x16 fields.

    Returns:
        str: Path to a .npz file holding 'fields' of shape (20, 2, 16, 16).
    """
    rng = np.random.default_rng(0)
    fields = rng.normal(loc=3.0, scale=2.0, size=(20, 2, 16, 16)).astype(np.float32)
    path = tmp_path / "fields.npz"
    np.savez(path, fields=fields)
    return str(path)


@pytest.fixture
def experiment_toml(tmp_path, fields_file):
    """
    Write a minimal experiment file pointing at fields_file.

    Returns:
        str: Path to the TOML file.
    """
    savedir = tmp_path / "output"
    content = f"""
[experiment]
savedir = "{savedir.as_posix()}"
rngseed = 7
nogpu = true

[data]
path = "{fields_file}"
batchsize = 4
train_fraction = 0.75
channels = [0]

[model]
sigma_min = 0.01
sigma_max = 5.0
noised_channels = 1
embed_dim = 32

[optimizer]
learning_rate = 1e-3
nwarmup = 2
ema_rate = 0.9

[training]
nepochs = 2
freq_chckpt = 1

[sampling]
nsamples = 2
nsteps = 4
eps = 1e-3
animate = true
"""
    path = tmp_path / "Experiment.toml"
    path.write_text(content)
    return str(path)


@pytest.fixture
def small_cyclegan_nets():
    """
    Provide small CycleGAN networks for single-channel 16x16 fields.

    Returns:
        tuple: (gen_ab, gen_ba, dis_a, dis_b)
    """
    torch.manual_seed(0)
    return (
        NoisyUNetGenerator(1, 1, features=(8, 16, 32)),
        NoisyUNetGenerator(1, 1, features=(8, 16, 32)),
        PatchDiscriminator(1, features=(8, 16, 32)),
        PatchDiscriminator(1, features=(8, 16, 32)),
    )


@pytest.fixture
def cyclegan_toml(tmp_path, fields_file):
    """
    Write a minimal CycleGAN experiment translating channel 0 to channel 1.

    Returns:
        str: Path to the TOML file.
    """
    savedir = tmp_path / "cyclegan"
    content = f"""
[experiment]
savedir = "{savedir.as_posix()}"
rngseed = 3
nogpu = true

[domain_a]
path = "{fields_file}"
train_fraction = 0.5
channels = [0]

[domain_b]
path = "{fields_file}"
train_fraction = 0.5
channels = [1]

[cyclegan]
nepochs = 2
batchsize = 4
generator_features = [8, 16, 32]
discriminator_features = [8, 16, 32]
"""
    path = tmp_path / "CycleGAN.toml"
    path.write_text(content)
    return str(path)
