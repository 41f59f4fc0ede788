"""
Training and sampling workflows driven by an experiment TOML file.

Usage:
    climagen-train -c Experiment.toml     # train, then sample if [sampling] is set
    climagen-sample -c Experiment.toml    # sample from the saved checkpoint
    climagen-cyclegan -c CycleGAN.toml    # train a CycleGAN between two domains
"""

import argparse
import logging
import os
from typing import Optional
import matplotlib.pyplot as plt
import torch

from . import setup_logging
from .config import CycleGANParameters, ExperimentConfig, Parameters
from .cyclegan import CycleGANTrainer
from .data import get_dataloaders, get_paired_dataloader
from .nets import NoiseConditionalScoreNetwork, NoisyUNetGenerator, PatchDiscriminator
from .sgm import (
    ScoreMatchingTrainer,
    VarianceExplodingSDE,
    euler_maruyama_sampler,
    score_matching_loss,
    setup_sampler,
)
from .visualizations import (
    convert_to_animation,
    plot_loss_history,
    plot_pixel_distribution,
    save_image_grid,
    setup_publication_style,
)

logger = logging.getLogger(__name__)


def build_model(params: Parameters) -> VarianceExplodingSDE:
    """VE SDE around a freshly initialised score network."""
    net = NoiseConditionalScoreNetwork.from_config(params.model)
    return VarianceExplodingSDE(params.model.sigma_max, params.model.sigma_min, net)


def _generator(seed: int, device: torch.device = torch.device('cpu')) -> torch.Generator:
    generator = torch.Generator(device=device)
    if seed > 0:
        generator.manual_seed(seed)
    else:
        generator.seed()
    return generator


def _dataloaders(params: Parameters):
    savedir = params.experiment.savedir
    train_loader, test_loader = get_dataloaders(
        params.data,
        generator=_generator(params.experiment.rngseed),
        split_file=os.path.join(savedir, "split.pt"),
    )

    n_channels = train_loader.dataset.tensors[0].shape[1]
    if n_channels != params.model.noised_channels:
        raise ValueError(
            f"data has {n_channels} channels, model.noised_channels is {params.model.noised_channels}"
        )
    return train_loader, test_loader


def _prepare(exp: ExperimentConfig) -> torch.device:
    os.makedirs(exp.savedir, exist_ok=True)

    if exp.logging:
        setup_logging(filename=os.path.join(exp.savedir, "experiment.log"))

    if exp.rngseed > 0:
        torch.manual_seed(exp.rngseed)

    device = exp.device
    logger.info("Using device: %s", device)
    return device


def run_training(params: Parameters) -> ScoreMatchingTrainer:
    """
    Train a VE score model as described by params.

    Resumes from savedir/checkpoint.pt when both the checkpoint and the loss
    file of a previous run exist.

    Returns:
        The trainer holding the trained model and its EMA copy
    """
    device = _prepare(params.experiment)
    dataloaders = _dataloaders(params)

    trainer = ScoreMatchingTrainer(
        model=build_model(params),
        loss_fn=score_matching_loss,
        optimizer_config=params.optimizer,
        training_config=params.training,
        savedir=params.experiment.savedir,
        device=device,
    )

    start_epoch = 1
    if os.path.isfile(trainer.checkpoint_path) and os.path.isfile(trainer.loss_file):
        start_epoch = trainer.load_checkpoint(trainer.checkpoint_path) + 1

    if start_epoch > params.training.nepochs:
        logger.info("Checkpoint already at epoch %d, nothing to train", start_epoch - 1)
        return trainer

    trainer.train(dataloaders, start_epoch=start_epoch)

    fig = plot_loss_history(trainer.loss_file)
    fig.savefig(os.path.join(params.experiment.savedir, "losses.png"))
    plt.close(fig)
    return trainer


def run_sampling(params: Parameters) -> torch.Tensor:
    """
    Sample from the EMA model of a trained experiment and save figures.

    Writes sampled_noise.png, em_images.png, pixel_distribution.png and,
    with sampling.animate, em_animation.gif to the save directory.

    Returns:
        Generated samples [nsamples, C, H, W]
    """
    if params.sampling is None:
        raise ValueError("experiment has no [sampling] table")

    device = _prepare(params.experiment)
    savedir = params.experiment.savedir
    sampling = params.sampling

    checkpoint_path = os.path.join(savedir, "checkpoint.pt")
    if not os.path.isfile(checkpoint_path):
        raise FileNotFoundError(f"Checkpoint not found at {checkpoint_path}")

    model = build_model(params).to(device)
    state = torch.load(checkpoint_path, map_location=device)
    model.load_state_dict(state['model_smooth'])
    model.eval()

    _, test_loader = _dataloaders(params)
    reference = torch.cat([batch[0] for batch in test_loader]) if len(test_loader) else None
    shape = (params.model.noised_channels, *test_loader.dataset.tensors[0].shape[-2:])

    generator = _generator(params.experiment.rngseed, device)
    time_steps, dt, init_x = setup_sampler(
        model, shape,
        num_images=sampling.nsamples,
        num_steps=sampling.nsteps,
        eps=sampling.eps,
        device=device,
        generator=generator,
    )
    samples, trajectory = euler_maruyama_sampler(
        model, init_x, time_steps, dt,
        generator=generator,
        return_trajectory=True,
        show_progress=True,
    )

    setup_publication_style()
    save_image_grid(init_x, os.path.join(savedir, "sampled_noise.png"), title="Prior samples")
    save_image_grid(samples, os.path.join(savedir, "em_images.png"), title="Euler-Maruyama samples")

    fig = plot_pixel_distribution(samples, reference)
    fig.savefig(os.path.join(savedir, "pixel_distribution.png"))
    plt.close(fig)

    if sampling.animate:
        convert_to_animation(
            trajectory, os.path.join(savedir, "em_animation.gif"),
            stride=max(1, sampling.nsteps // 100),
        )

    return samples


def run_cyclegan(params: CycleGANParameters) -> CycleGANTrainer:
    """
    Train a CycleGAN between the two domains described by params.

    Restarts from savedir/cyclegan_checkpoint.pt when it exists, then
    saves cyclegan_translations.png with a batch of A fields and their
    translation to B.

    Returns:
        The trainer holding the four trained networks
    """
    exp = params.experiment
    cfg = params.cyclegan
    device = _prepare(exp)

    loader = get_paired_dataloader(
        params.domain_a, params.domain_b,
        batchsize=cfg.batchsize,
        generator=_generator(exp.rngseed),
    )
    n_channels = loader.dataset.tensors[0].shape[1]

    trainer = CycleGANTrainer(
        gen_ab=NoisyUNetGenerator(n_channels, cfg.noise_channels, cfg.generator_features),
        gen_ba=NoisyUNetGenerator(n_channels, cfg.noise_channels, cfg.generator_features),
        dis_a=PatchDiscriminator(n_channels, cfg.discriminator_features),
        dis_b=PatchDiscriminator(n_channels, cfg.discriminator_features),
        config=cfg,
        savedir=exp.savedir,
        device=device,
        generator=_generator(exp.rngseed, device),
    )

    start_epoch = 1
    if os.path.isfile(trainer.checkpoint_path):
        logger.info("Initializing with existing model and optimizers")
        start_epoch = trainer.load_checkpoint(trainer.checkpoint_path) + 1
    else:
        logger.info("Initializing a new model and optimizers from scratch")

    if start_epoch <= cfg.nepochs:
        trainer.train(loader, start_epoch=start_epoch)
    else:
        logger.info("Checkpoint already at epoch %d, nothing to train", start_epoch - 1)

    a, _ = next(iter(loader))
    a = a.to(device)
    with torch.no_grad():
        b_fake = trainer.gen_ab(a, trainer.sample_noise(a))

    setup_publication_style()
    save_image_grid(
        torch.cat([a, b_fake]), os.path.join(exp.savedir, "cyclegan_translations.png"),
        ncols=a.shape[0], title="Domain A (top) and translation to B (bottom)",
    )
    return trainer


def parse_args(argv=None, description: str = "") -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Command-line arguments. If None, uses sys.argv.
        description: Program description shown in --help

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "-c",
        "--config",
        default="Experiment.toml",
        help="Path to the experiment TOML file (default: Experiment.toml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def train_main(argv: Optional[list] = None) -> None:
    """Entry point of climagen-train."""
    args = parse_args(argv, "Train a score-based diffusion model on gridded fields.")
    if args.verbose:
        setup_logging(level=logging.DEBUG)

    params = Parameters.load(args.config)
    run_training(params)

    if params.sampling is not None:
        run_sampling(params)


def sample_main(argv: Optional[list] = None) -> None:
    """Entry point of climagen-sample."""
    args = parse_args(argv, "Sample from a trained score-based diffusion model.")
    if args.verbose:
        setup_logging(level=logging.DEBUG)

    run_sampling(Parameters.load(args.config))


def cyclegan_main(argv: Optional[list] = None) -> None:
    """Entry point of climagen-cyclegan."""
    args = parse_args(argv, "Train a CycleGAN between two unpaired field domains.")
    if args.verbose:
        setup_logging(level=logging.DEBUG)

    run_cyclegan(CycleGANParameters.load(args.config))


if __name__ == "__main__":
    train_main()
