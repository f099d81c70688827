import itertools  # For combinatorial combinations

import matplotlib.pyplot as plt  # Plotting
import numpy as np  # Core numerical library
from scipy.stats import chi2

from .BH5_Inclusion import calculate_reference_mean


"""
Code for plotting diagnostics of a hypervolume fit: trace plots of the MCMC
chains, and a "corner plot" of the 2D projections of the fitted hypervolume
with the observations.
"""



# Some hard-coded plotting configuration
DPI = 200  # Dots per inch image resolution
LABEL_FONTSIZE = 8
TICK_FONTSIZE = 7
LINE_WIDTH = 0.5
CHAIN_COLOURS = ["0.2", (56./255, 132./255, 0), "0.6", (0.7, 0.2, 0.1)]



def _element_indices(param_shape, name):
    """
    List the indices of the elements of a monitored quantity to plot.  For the
    symmetric precision matrix only the upper triangle is used.
    """
    if name == "tau" and len(param_shape) == 2:
        return [(i, j) for i in range(param_shape[0])
                       for j in range(i, param_shape[1])]
    return list(itertools.product(*[range(n) for n in param_shape]))



def plot_chains(Samples, out_filename, name="tau", dimensions=None):
    """
    Plot the "chain" of sampled values of each element of a monitored quantity,
    with a panel per element and a line per chain.
    Samples: A BH3_Gibbs.BH_Samples instance
    out_filename: The filename for the output image.  The image file type is
                  specified by the file extension.
    name: The name of the monitored quantity to plot.  Default: "tau" (the
          precision matrix).
    dimensions: List of variable names, used for labelling the elements of
                "tau".  Optional.
    """
    arr = Samples[name]  # Shape (n_chains, n_kept, *param_shape)
    n_chains, n_kept = arr.shape[:2]
    inds = _element_indices(arr.shape[2:], name)
    n_el = len(inds)

    # Initialise plot and axes:
    fig, ax_arr = plt.subplots(nrows=n_el, ncols=1, sharex=True, sharey=False,
                               squeeze=False, figsize=(4, 1.5 + n_el * 1.0))
    x_vec = np.arange(n_kept)
    for ax, ind in zip(ax_arr[:, 0], inds):
        # This axes is for one element of the monitored quantity
        for chain in range(n_chains):
            colour = CHAIN_COLOURS[chain % len(CHAIN_COLOURS)]
            ax.plot(x_vec, arr[(chain, slice(None)) + ind], c=colour,
                    lw=LINE_WIDTH)
        if dimensions is not None and name == "tau":
            label = "{0}[{1}]".format(name, ",".join(dimensions[i] for i in ind))
        else:
            label = "{0}[{1}]".format(name, ",".join(str(i) for i in ind))
        ax.set_ylabel(label, fontsize=LABEL_FONTSIZE)
        ax.tick_params(labelsize=TICK_FONTSIZE)

    ax_arr[-1, 0].set_xlabel("Retained draw", fontsize=LABEL_FONTSIZE)
    fig.subplots_adjust(left=0.25, right=0.95, bottom=0.1, hspace=0, top=0.95)
    fig.savefig(out_filename, dpi=DPI)
    plt.close(fig)



def _projected_ellipse(mean_2D, cov_2D, scale, n_pts=200):
    """
    Points on the ellipse {x : (x - m)^T C^-1 (x - m) = scale^2} in 2D.
    """
    theta = np.linspace(0, 2 * np.pi, n_pts)
    circle = np.column_stack([np.cos(theta), np.sin(theta)])
    L = np.linalg.cholesky(cov_2D)
    return mean_2D + scale * circle @ L.T



def plot_hypervolume(Hypervolume, out_filename):
    """
    Generate a "corner plot" of the fitted hypervolume: for every pair of
    variables, the observations and the 2D projection (shadow) of the
    ci_level ellipsoid around the reference mean used in inclusion testing.
    For a single variable, the observations are shown with the ci_level
    interval.
    Hypervolume: A BH4_Hypervolume.BH_Hypervolume instance
    out_filename: The filename for the output image.
    """
    names = Hypervolume.dimensions
    n = len(names)
    mean = calculate_reference_mean(Hypervolume)
    cov = Hypervolume.covariance
    # Radius (in standard deviations) of the ci_level ellipsoid in n dims:
    scale = np.sqrt(chi2.ppf(Hypervolume.ci_level, df=n))

    # Observations for each group (a single "group" without grouping)
    Y = Hypervolume.Y
    if Hypervolume.is_grouped:
        obs_sets = [(str(g), Y[:, k, :][~np.isnan(Y[:, k, 0])])
                    for k, g in enumerate(Hypervolume.group_names)]
    else:
        obs_sets = [("Observations", Y)]

    if n == 1:
        fig, ax = plt.subplots(figsize=(4, 3))
        half_width = scale * np.sqrt(cov[0, 0])
        ax.axvspan(mean[0] - half_width, mean[0] + half_width, color="0.85")
        for i, (label, obs) in enumerate(obs_sets):
            ax.plot(obs[:, 0], np.full(len(obs), i), "|", label=label)
        ax.set_xlabel(names[0], fontsize=LABEL_FONTSIZE)
        ax.set_yticks([])
        axes_list = [ax]
    else:
        size = 1.5 + 2.0 * (n - 1)
        fig, axes = plt.subplots(n - 1, n - 1, figsize=(size, size),
                                 squeeze=False)
        axes_list = []
        for ax in axes.ravel():
            ax.set_visible(False)  # Needed axes will be turned on later
        for i_x, i_y in itertools.combinations(range(n), 2):
            ax = axes[i_y - 1, i_x]
            ax.set_visible(True)
            axes_list.append(ax)
            pair = [i_x, i_y]
            for label, obs in obs_sets:
                ax.scatter(obs[:, i_x], obs[:, i_y], s=4, label=label)
            ellipse = _projected_ellipse(mean[pair], cov[np.ix_(pair, pair)],
                                         scale)
            ax.plot(ellipse[:, 0], ellipse[:, 1], c="k", lw=LINE_WIDTH * 2)
            ax.plot(mean[i_x], mean[i_y], "k+")
            if i_y == n - 1:
                ax.set_xlabel(names[i_x], fontsize=LABEL_FONTSIZE)
            if i_x == 0:
                ax.set_ylabel(names[i_y], fontsize=LABEL_FONTSIZE)

    for ax in axes_list:
        ax.tick_params(labelsize=TICK_FONTSIZE)
    if len(obs_sets) > 1:
        axes_list[0].legend(fontsize=TICK_FONTSIZE, frameon=False)
    fig.suptitle("Volume: {0:.4g} ({1:.0%} ellipsoid)".format(
                 Hypervolume.volume, Hypervolume.ci_level),
                 fontsize=LABEL_FONTSIZE)
    fig.savefig(out_filename, dpi=DPI)
    plt.close(fig)
