"""Tests for configuration dataclasses and TOML loading."""
import pytest
import torch

from climagen.config import (
    DataConfig,
    ExperimentConfig,
    ModelConfig,
    OptimizerConfig,
    Parameters,
    CycleGANConfig,
    CycleGANParameters,
    SamplingConfig,
    TrainingConfig,
)


class TestDefaults:

    def test_defaults_are_valid(self):
        params = Parameters()

        assert params.model.sigma_min < params.model.sigma_max
        assert params.sampling is None

    def test_sampling_defaults(self):
        sampling = SamplingConfig()
        assert (sampling.nsamples, sampling.nsteps, sampling.eps) == (5, 500, 1e-3)

    def test_nogpu_selects_cpu(self):
        assert ExperimentConfig(nogpu=True).device == torch.device('cpu')

    def test_crop_window_slices(self):
        config = DataConfig(i_init=2, i_end=10, j_end=5)
        assert config.irange == slice(2, 10)
        assert config.jrange == slice(None, 5)


class TestValidation:

    @pytest.mark.parametrize(
        "cls, kwargs, message",
        [
            (ExperimentConfig, {"rngseed": -1}, "rngseed"),
            (ExperimentConfig, {"savedir": ""}, "savedir"),
            (DataConfig, {"batchsize": 0}, "batchsize"),
            (DataConfig, {"train_fraction": 0.0}, "train_fraction"),
            (DataConfig, {"train_fraction": 1.5}, "train_fraction"),
            (DataConfig, {"i_init": 5, "i_end": 5}, "i_end"),
            (DataConfig, {"j_init": -1}, "j_init"),
            (DataConfig, {"channels": []}, "channels"),
            (ModelConfig, {"sigma_min": 0.0}, "sigma_min"),
            (ModelConfig, {"sigma_min": 2.0, "sigma_max": 1.0}, "sigma_max"),
            (ModelConfig, {"noised_channels": 0}, "noised_channels"),
            (ModelConfig, {"outer_kernelsize": 4}, "outer_kernelsize"),
            (ModelConfig, {"embed_dim": 33}, "embed_dim"),
            (OptimizerConfig, {"learning_rate": 0.0}, "learning_rate"),
            (OptimizerConfig, {"beta_2": 1.0}, "beta_2"),
            (OptimizerConfig, {"nwarmup": -1}, "nwarmup"),
            (OptimizerConfig, {"gradnorm": 0.0}, "gradnorm"),
            (OptimizerConfig, {"ema_rate": 1.0}, "ema_rate"),
            (TrainingConfig, {"nepochs": 0}, "nepochs"),
            (TrainingConfig, {"freq_chckpt": 0}, "freq_chckpt"),
            (SamplingConfig, {"nsteps": 1}, "nsteps"),
            (SamplingConfig, {"eps": 0.0}, "eps"),
            (SamplingConfig, {"nsamples": 0}, "nsamples"),
            (CycleGANConfig, {"lambda_cycle": -1.0}, "lambda_cycle"),
            (CycleGANConfig, {"beta_1": 1.0}, "beta_1"),
            (CycleGANConfig, {"batchsize": 0}, "batchsize"),
            (CycleGANConfig, {"generator_features": []}, "generator_features"),
        ],
    )
    def test_invalid_values_rejected(self, cls, kwargs, message):
        with pytest.raises(ValueError, match=message):
            cls(**kwargs)


class TestLoad:

    def test_load_experiment_file(self, experiment_toml, fields_file):
        params = Parameters.load(experiment_toml)

        assert params.experiment.rngseed == 7
        assert params.experiment.nogpu is True
        assert params.data.path == fields_file
        assert params.data.channels == [0]
        assert params.model.sigma_max == 5.0
        assert params.optimizer.nwarmup == 2
        assert params.training.nepochs == 2
        assert params.sampling is not None
        assert params.sampling.nsteps == 4
        assert params.sampling.animate is True

    def test_missing_tables_use_defaults(self, tmp_path):
        path = tmp_path / "Minimal.toml"
        path.write_text('[training]\nnepochs = 3\n')

        params = Parameters.load(str(path))

        assert params.training.nepochs == 3
        assert params.model == ModelConfig()
        assert params.sampling is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Parameters.load(str(tmp_path / "nope.toml"))

    def test_unknown_key_raises(self, tmp_path):
        path = tmp_path / "Bad.toml"
        path.write_text('[model]\nsigma_mid = 1.0\n')

        with pytest.raises(TypeError):
            Parameters.load(str(path))

    def test_invalid_value_in_file_raises(self, tmp_path):
        path = tmp_path / "Bad.toml"
        path.write_text('[optimizer]\nema_rate = 2.0\n')

        with pytest.raises(ValueError, match="ema_rate"):
            Parameters.load(str(path))

    def test_channel_count_must_match_model(self, tmp_path):
        path = tmp_path / "Bad.toml"
        path.write_text('[data]\nchannels = [0, 1]\n\n[model]\nnoised_channels = 1\n')

        with pytest.raises(ValueError, match="noised_channels"):
            Parameters.load(str(path))


class TestCycleGANParameters:

    def test_hyperparameter_defaults(self):
        config = CycleGANConfig()

        assert (config.lambda_cycle, config.lambda_identity, config.learning_rate) == (10.0, 5.0, 2e-4)
        assert (config.beta_1, config.beta_2) == (0.5, 0.999)

    def test_load_cyclegan_file(self, cyclegan_toml, fields_file):
        params = CycleGANParameters.load(cyclegan_toml)

        assert params.experiment.rngseed == 3
        assert params.domain_a.path == params.domain_b.path == fields_file
        assert (params.domain_a.channels, params.domain_b.channels) == ([0], [1])
        assert params.cyclegan.nepochs == 2
        assert params.cyclegan.lambda_cycle == 10.0

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CycleGANParameters.load(str(tmp_path / "nope.toml"))
