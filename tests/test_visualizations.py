"""Tests for sample grids, animations and diagnostic plots."""
import os

import matplotlib.pyplot as plt
import numpy as np
import pytest
import torch

from climagen.sgm.trainer import LOSS_FILE_HEADER
from climagen.visualizations import (
    convert_to_animation,
    convert_to_image,
    plot_loss_history,
    plot_pixel_distribution,
    read_loss_file,
    save_image_grid,
    setup_publication_style,
)


class TestConvertToImage:

    def test_single_row(self):
        x = torch.randn(5, 1, 8, 6)
        image = convert_to_image(x)

        assert image.shape == (8, 30)
        assert np.allclose(image[:, 6:12], x[1, 0].numpy())

    def test_rows_padded_with_nan(self):
        x = np.ones((5, 2, 4, 4))
        image = convert_to_image(x, ncols=2)

        assert image.shape == (12, 8)
        assert np.isnan(image[8:, 4:]).all()
        assert not np.isnan(image[:8]).any()

    def test_selects_channel(self):
        x = torch.zeros(1, 2, 4, 4)
        x[:, 1] = 7.0

        assert (convert_to_image(x, channel=1) == 7.0).all()

    def test_rejects_wrong_rank(self):
        with pytest.raises(ValueError):
            convert_to_image(np.zeros((4, 4)))


class TestFiles:

    def test_save_image_grid(self, tmp_path):
        setup_publication_style()
        path = tmp_path / "grid.png"

        save_image_grid(torch.randn(3, 1, 8, 8), str(path), ncols=2, title="Samples")

        assert path.exists() and path.stat().st_size > 0

    def test_convert_to_animation(self, tmp_path):
        path = tmp_path / "anim.gif"
        trajectory = torch.randn(8, 2, 1, 8, 8)

        convert_to_animation(trajectory, str(path), fps=10, stride=2)

        assert path.exists() and path.stat().st_size > 0

    def test_animation_rejects_bad_input(self, tmp_path):
        with pytest.raises(ValueError):
            convert_to_animation(torch.zeros(2, 1, 8, 8), str(tmp_path / "a.gif"))
        with pytest.raises(ValueError, match="stride"):
            convert_to_animation(torch.zeros(2, 1, 1, 8, 8), str(tmp_path / "a.gif"), stride=0)


class TestDiagnostics:

    def test_loss_history(self, tmp_path):
        loss_file = tmp_path / "losses.txt"
        loss_file.write_text(
            LOSS_FILE_HEADER + "\n1,2.0,3.0,2.5,3.5\n2,1.0,2.0,1.5,2.5\n"
        )

        losses = read_loss_file(str(loss_file))
        fig = plot_loss_history(str(loss_file))

        assert losses.shape == (2, 5)
        assert len(fig.axes) == 2
        assert len(fig.axes[0].lines) == 2
        plt.close(fig)

    def test_pixel_distribution(self):
        g = torch.Generator().manual_seed(0)
        fig = plot_pixel_distribution(torch.randn(4, 1, 8, 8, generator=g),
                                      torch.randn(6, 1, 8, 8, generator=g))

        assert fig.axes[0].get_xlabel() == 'Pixel value'
        plt.close(fig)
