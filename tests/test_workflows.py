"""End-to-end tests of the training and sampling workflows."""
import os

import pytest
import torch

from climagen.config import CycleGANParameters, Parameters
from climagen.workflows import (
    cyclegan_main,
    parse_args,
    run_cyclegan,
    run_sampling,
    run_training,
    sample_main,
    train_main,
)


class TestWorkflows:

    def test_training_then_sampling(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        savedir = params.experiment.savedir

        trainer = run_training(params)

        assert os.path.isfile(os.path.join(savedir, "checkpoint.pt"))
        assert os.path.isfile(os.path.join(savedir, "losses.txt"))
        assert os.path.isfile(os.path.join(savedir, "losses.png"))
        assert not trainer.model.training

        samples = run_sampling(params)

        assert samples.shape == (2, 1, 16, 16)
        assert torch.isfinite(samples).all()
        for name in ("sampled_noise.png", "em_images.png", "pixel_distribution.png", "em_animation.gif"):
            assert os.path.isfile(os.path.join(savedir, name))

    def test_sampling_is_reproducible_with_seed(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        run_training(params)

        assert torch.equal(run_sampling(params), run_sampling(params))

    def test_finished_run_is_not_retrained(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        run_training(params)
        loss_file = os.path.join(params.experiment.savedir, "losses.txt")
        with open(loss_file) as f:
            before = f.read()

        run_training(params)

        with open(loss_file) as f:
            assert f.read() == before

    def test_sampling_without_checkpoint_raises(self, experiment_toml):
        with pytest.raises(FileNotFoundError, match="Checkpoint"):
            run_sampling(Parameters.load(experiment_toml))

    def test_sampling_requires_sampling_table(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        params.sampling = None

        with pytest.raises(ValueError, match="sampling"):
            run_sampling(params)

    def test_cli_entry_points(self, experiment_toml):
        train_main(["-c", experiment_toml])
        sample_main(["--config", experiment_toml])

        savedir = Parameters.load(experiment_toml).experiment.savedir
        assert os.path.isfile(os.path.join(savedir, "em_images.png"))

    def test_parse_args_defaults(self):
        args = parse_args([])
        assert args.config == "Experiment.toml"
        assert not args.verbose

    def test_unseeded_sampling_reuses_training_split(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        params.experiment.rngseed = 0
        run_training(params)
        split_file = os.path.join(params.experiment.savedir, "split.pt")
        split = torch.load(split_file)

        run_sampling(params)

        assert torch.equal(torch.load(split_file), split)

    def test_data_channels_must_match_model(self, experiment_toml):
        params = Parameters.load(experiment_toml)
        params.data.channels = None

        with pytest.raises(ValueError, match="channels"):
            run_training(params)


class TestCycleGANWorkflow:

    def test_training_writes_outputs(self, cyclegan_toml):
        params = CycleGANParameters.load(cyclegan_toml)
        savedir = params.experiment.savedir

        trainer = run_cyclegan(params)

        for name in ("cyclegan_checkpoint.pt", "cyclegan_losses.txt", "cyclegan_translations.png"):
            assert os.path.isfile(os.path.join(savedir, name))
        assert not trainer.gen_ab.training

    def test_restart_continues_training(self, cyclegan_toml):
        params = CycleGANParameters.load(cyclegan_toml)
        run_cyclegan(params)

        params.cyclegan.nepochs = 3
        run_cyclegan(params)

        with open(os.path.join(params.experiment.savedir, "cyclegan_losses.txt")) as f:
            epochs = [line.split(',')[0] for line in f.read().splitlines()[1:]]
        assert epochs == ['1', '2', '3']
        assert torch.load(os.path.join(params.experiment.savedir, "cyclegan_checkpoint.pt"))['epoch'] == 3

    def test_cli_entry_point(self, cyclegan_toml):
        cyclegan_main(["-c", cyclegan_toml])

        savedir = CycleGANParameters.load(cyclegan_toml).experiment.savedir
        assert os.path.isfile(os.path.join(savedir, "cyclegan_translations.png"))
