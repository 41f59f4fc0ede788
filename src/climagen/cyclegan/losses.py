"""
Least-squares CycleGAN objectives.

Generator ab maps domain A to domain B, generator ba maps B to A, and
discriminator a (b) scores how real a field of domain A (B) looks.

Generator loss:
    L_G = LSGAN(D_b(G_ab(a)), 1) + LSGAN(D_a(G_ba(b)), 1)
        + λ   (|G_ba(G_ab(a)) - a| + |G_ab(G_ba(b)) - b|)
        + λid (|G_ab(b) - b| + |G_ba(a) - a|)

Discriminator loss:
    L_D = LSGAN(D_a(a), 1) + LSGAN(D_a(G_ba(b)), 0)
        + LSGAN(D_b(b), 1) + LSGAN(D_b(G_ab(a)), 0)

with LSGAN(p, y) = mean((p - y)²) and |·| the mean absolute error.
"""

import torch
import torch.nn as nn


def _lsgan(prob: torch.Tensor, target: float) -> torch.Tensor:
    return torch.mean((prob - target) ** 2)


def _l1(x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
    return torch.mean(torch.abs(x - y))


def generator_loss(
    gen_ab: nn.Module,
    gen_ba: nn.Module,
    dis_a: nn.Module,
    dis_b: nn.Module,
    a: torch.Tensor,
    b: torch.Tensor,
    noise: torch.Tensor,
    lambda_cycle: float = 10.0,
    lambda_identity: float = 5.0,
) -> torch.Tensor:
    """
    Adversarial, cycle-consistency and identity loss of both generators.

    Args:
        gen_ab, gen_ba: Generators A→B and B→A, called as G(x, noise)
        dis_a, dis_b:   Discriminators of domains A and B
        a, b:           Batches of the two domains [N, C, H, W]
        noise:          Generator noise [N, noise_channels, H, W]
        lambda_cycle:   Weight of the cycle-consistency terms
        lambda_identity: Weight of the identity terms

    Returns:
        Scalar loss
    """
    b_fake = gen_ab(a, noise)
    a_fake = gen_ba(b, noise)

    adversarial = _lsgan(dis_b(b_fake), 1.0) + _lsgan(dis_a(a_fake), 1.0)
    cycle = _l1(gen_ba(b_fake, noise), a) + _l1(gen_ab(a_fake, noise), b)
    identity = _l1(gen_ab(b, noise), b) + _l1(gen_ba(a, noise), a)

    return adversarial + lambda_cycle * cycle + lambda_identity * identity


def discriminator_loss(
    gen_ab: nn.Module,
    gen_ba: nn.Module,
    dis_a: nn.Module,
    dis_b: nn.Module,
    a: torch.Tensor,
    b: torch.Tensor,
    noise: torch.Tensor,
) -> torch.Tensor:
    """
    Least-squares loss of both discriminators on real and translated fields.

    The translated fields are computed without gradient, so the loss only
    depends on the discriminator parameters.

    Returns:
        Scalar loss
    """
    with torch.no_grad():
        b_fake = gen_ab(a, noise)
        a_fake = gen_ba(b, noise)

    real = _lsgan(dis_a(a), 1.0) + _lsgan(dis_b(b), 1.0)
    fake = _lsgan(dis_a(a_fake), 0.0) + _lsgan(dis_b(b_fake), 0.0)
    return real + fake
