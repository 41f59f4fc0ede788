"""Tests for ScoreMatchingTrainer."""
import copy
import os

import pytest
import torch
from torch.utils.data import DataLoader, TensorDataset

from climagen.config import OptimizerConfig, TrainingConfig
from climagen.sgm import ScoreMatchingTrainer, score_matching_loss
from climagen.sgm.trainer import LOSS_FILE_HEADER


@pytest.fixture
def dataloaders():
    g = torch.Generator().manual_seed(0)
    train = torch.randn(8, 1, 8, 8, generator=g)
    test = torch.randn(4, 1, 8, 8, generator=g)
    return (
        DataLoader(TensorDataset(train), batch_size=4, shuffle=True),
        DataLoader(TensorDataset(test), batch_size=4),
    )


def _trainer(model, savedir, nepochs=2, freq_chckpt=1):
    return ScoreMatchingTrainer(
        model=model,
        loss_fn=score_matching_loss,
        optimizer_config=OptimizerConfig(learning_rate=1e-3, nwarmup=2, ema_rate=0.5),
        training_config=TrainingConfig(nepochs=nepochs, freq_chckpt=freq_chckpt),
        savedir=str(savedir),
    )


class TestScoreMatchingTrainer:
    """Tests for the training loop, loss file and checkpoints."""

    def test_train_records_history_and_loss_file(self, small_ve_model, dataloaders, tmp_path):
        trainer = _trainer(small_ve_model, tmp_path / "run")

        history = trainer.train(dataloaders)

        assert set(history) == {'mean_train', 'spatial_train', 'mean_test', 'spatial_test', 'grad_norm'}
        assert all(len(v) == 2 for v in history.values())

        with open(trainer.loss_file) as f:
            lines = f.read().splitlines()
        assert lines[0] == LOSS_FILE_HEADER
        assert [line.split(',')[0] for line in lines[1:]] == ['1', '2']
        assert len(lines[1].split(',')) == 5

    def test_train_updates_weights_and_ema(self, small_ve_model, dataloaders, tmp_path):
        before = [p.detach().clone() for p in small_ve_model.parameters()]
        trainer = _trainer(small_ve_model, tmp_path)

        trainer.train(dataloaders)

        after = list(trainer.model.parameters())
        smooth = list(trainer.model_smooth.parameters())
        assert any(not torch.equal(b, a) for b, a in zip(before, after))
        assert any(not torch.equal(s, a) for s, a in zip(smooth, after))
        assert all(not p.requires_grad for p in smooth)

    def test_checkpoint_written_every_freq_and_at_end(self, small_ve_model, dataloaders, tmp_path):
        trainer = _trainer(small_ve_model, tmp_path, nepochs=3, freq_chckpt=2)

        trainer.train(dataloaders)

        state = torch.load(trainer.checkpoint_path)
        assert state['epoch'] == 3
        assert set(state) == {'epoch', 'model', 'model_smooth', 'optimizer', 'scheduler'}

    def test_resume_continues_from_checkpoint(self, small_ve_model, dataloaders, tmp_path):
        first = _trainer(small_ve_model, tmp_path, nepochs=2)
        first.train(dataloaders)
        smooth_state = {k: v.clone() for k, v in first.model_smooth.state_dict().items()}

        resumed = _trainer(copy.deepcopy(small_ve_model), tmp_path, nepochs=3)
        epoch = resumed.load_checkpoint(resumed.checkpoint_path)

        assert epoch == 2
        for k, v in resumed.model_smooth.state_dict().items():
            assert torch.equal(v, smooth_state[k])
        assert resumed.scheduler.last_epoch == first.scheduler.last_epoch

        history = resumed.train(dataloaders, start_epoch=epoch + 1)

        assert len(history['mean_train']) == 1
        with open(resumed.loss_file) as f:
            epochs = [line.split(',')[0] for line in f.read().splitlines()[1:]]
        assert epochs == ['1', '2', '3']

    def test_load_missing_checkpoint_raises(self, small_ve_model, tmp_path):
        trainer = _trainer(small_ve_model, tmp_path)
        with pytest.raises(FileNotFoundError):
            trainer.load_checkpoint(os.path.join(tmp_path, "missing.pt"))

    def test_evaluate_empty_loader_is_nan(self, small_ve_model, tmp_path):
        trainer = _trainer(small_ve_model, tmp_path)
        empty = DataLoader(TensorDataset(torch.zeros(0, 1, 8, 8)), batch_size=2)

        mean_loss, spatial_loss = trainer.evaluate(empty)

        assert mean_loss != mean_loss and spatial_loss != spatial_loss

    def test_train_step_returns_gradient_norm(self, small_ve_model, tmp_path):
        trainer = _trainer(small_ve_model, tmp_path)

        grad_norm = trainer.train_step(torch.randn(2, 1, 8, 8))

        assert grad_norm > 0
