"""
Plot styling for sample grids and training diagnostics.

Sets up matplotlib for compact figures of gridded fields: STIX fonts, no
grids, lower-origin images with a perceptually uniform colormap.
"""

import matplotlib.pyplot as plt
import logging

logger = logging.getLogger(__name__)

# Suppress matplotlib mathtext font substitution warnings
logging.getLogger('matplotlib.mathtext').setLevel(logging.WARNING)


def setup_publication_style():
    """
    Configure matplotlib for figures of ocean/climate fields.

    Images are drawn with origin='lower' so that row 0 of a field (the
    southern edge of the domain) sits at the bottom of the plot.
    """
    plt.rcParams.update({
        'font.family': 'STIXGeneral',
        'mathtext.fontset': 'stix',
        'axes.labelsize': 11,
        'axes.titlesize': 12,
        'legend.fontsize': 10,

        'axes.grid': False,
        'axes.spines.top': False,
        'axes.spines.right': False,

        # --- Fields ---
        'image.cmap': 'viridis',
        'image.origin': 'lower',
        'image.interpolation': 'nearest',

        'savefig.dpi': 200,
        'savefig.bbox': 'tight',
    })

    logger.debug("Plot style configured")
