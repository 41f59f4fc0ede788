"""
Loading of gridded simulation fields for training.

Fields are stored as numpy arrays of layout [N, C, H, W] (samples,
channels, rows, columns), either as a .npy file or inside a .npz archive
under the key 'fields' (or as its only array).
"""

import logging
import os
from typing import Optional, Sequence, Tuple
import numpy as np
import torch
from torch.utils.data import DataLoader, TensorDataset

from .config import DataConfig

logger = logging.getLogger(__name__)


def load_fields(
    path: str,
    channels: Optional[Sequence[int]] = None,
    irange: slice = slice(None),
    jrange: slice = slice(None),
) -> torch.Tensor:
    """
    Read fields from disk and select channels and a crop window.

    Args:
        path:     Path to a .npy or .npz file
        channels: Channel indices to keep (None keeps all)
        irange:   Row slice
        jrange:   Column slice

    Returns:
        Float32 tensor [N, C', H', W']

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file holds no usable 4D array
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found at {path}")

    if path.endswith(".npz"):
        with np.load(path) as archive:
            if "fields" in archive.files:
                fields = archive["fields"]
            elif len(archive.files) == 1:
                fields = archive[archive.files[0]]
            else:
                raise ValueError(
                    f"{path} holds several arrays {archive.files}, expected one named 'fields'"
                )
    else:
        fields = np.load(path)

    if fields.ndim != 4:
        raise ValueError(f"fields must have layout [N, C, H, W], got shape {fields.shape}")

    if channels is not None:
        fields = fields[:, list(channels)]
    fields = fields[:, :, irange, jrange]

    if fields.size == 0:
        raise ValueError(f"selection from {path} is empty (shape {fields.shape})")

    logger.info("Loaded fields %s from %s", fields.shape, path)
    return torch.from_numpy(np.ascontiguousarray(fields, dtype=np.float32))


def standardize(
    train: torch.Tensor,
    test: torch.Tensor,
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Standardise each channel with the mean and std of the training set.

    Returns:
        (train_scaled, test_scaled, mean [1, C, 1, 1], std [1, C, 1, 1])
    """
    mean = train.mean(dim=(0, 2, 3), keepdim=True)
    std = train.std(dim=(0, 2, 3), keepdim=True).clamp_min(1e-8)
    return (train - mean) / std, (test - mean) / std, mean, std


def get_dataloaders(
    config: DataConfig,
    generator: Optional[torch.Generator] = None,
    split_file: Optional[str] = None,
) -> Tuple[DataLoader, DataLoader]:
    """
    Build train and test loaders from the [data] table of an experiment.

    Samples are split at random according to train_fraction; with
    standard_scaling the test set is scaled with the train statistics.
    If split_file names an existing file, the sample permutation stored
    there is reused; otherwise the drawn permutation is written to it, so
    later runs see the same train/test split whatever their seed.

    Args:
        config:     Data configuration
        generator:  Random generator for the split and the shuffling
        split_file: Optional path of the saved sample permutation

    Returns:
        (train_loader, test_loader)

    Raises:
        ValueError: If the stored permutation does not match the data
    """
    fields = load_fields(config.path, config.channels, config.irange, config.jrange)

    n = fields.shape[0]
    n_train = max(1, int(round(config.train_fraction * n)))

    if split_file is not None and os.path.isfile(split_file):
        perm = torch.load(split_file)
        if perm.numel() != n:
            raise ValueError(
                f"split in {split_file} covers {perm.numel()} samples, data has {n}"
            )
        logger.info("Reusing train/test split from %s", split_file)
    else:
        perm = torch.randperm(n, generator=generator)
        if split_file is not None:
            torch.save(perm, split_file)

    train, test = fields[perm[:n_train]], fields[perm[n_train:]]

    if config.standard_scaling:
        train, test, _, _ = standardize(train, test)

    logger.info("Split %d samples into %d train / %d test", n, train.shape[0], test.shape[0])

    train_loader = DataLoader(
        TensorDataset(train),
        batch_size=config.batchsize,
        shuffle=True,
        generator=generator,
    )
    test_loader = DataLoader(TensorDataset(test), batch_size=config.batchsize)
    return train_loader, test_loader


def get_paired_dataloader(
    config_a: DataConfig,
    config_b: DataConfig,
    batchsize: int = 1,
    generator: Optional[torch.Generator] = None,
) -> DataLoader:
    """
    Loader of unpaired samples from two domains for CycleGAN training.

    Each domain is split and scaled as in get_dataloaders; the two
    training splits are shuffled independently and truncated to the
    shorter one, so batch k holds unrelated samples of A and B.

    Args:
        config_a:  Data configuration of domain A
        config_b:  Data configuration of domain B
        batchsize: Mini-batch size
        generator: Random generator for the splits and the shuffling

    Returns:
        DataLoader yielding (a, b) batches [B, C, H, W]

    Raises:
        ValueError: If the two domains have different per-sample shapes
    """
    train_a = get_dataloaders(config_a, generator=generator)[0].dataset.tensors[0]
    train_b = get_dataloaders(config_b, generator=generator)[0].dataset.tensors[0]

    if train_a.shape[1:] != train_b.shape[1:]:
        raise ValueError(
            f"domains must have the same sample shape, got {tuple(train_a.shape[1:])} "
            f"and {tuple(train_b.shape[1:])}"
        )

    n = min(train_a.shape[0], train_b.shape[0])
    train_a = train_a[torch.randperm(train_a.shape[0], generator=generator)[:n]]
    train_b = train_b[torch.randperm(train_b.shape[0], generator=generator)[:n]]

    logger.info("Paired %d samples of domains A and B", n)
    return DataLoader(
        TensorDataset(train_a, train_b),
        batch_size=batchsize,
        shuffle=True,
        generator=generator,
    )
