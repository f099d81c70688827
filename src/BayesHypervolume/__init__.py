"""
BayesHypervolume

This module estimates the "hypervolume" occupied by a set of individuals in
the space of n=1 or more continuous variables (e.g. the morphospace or niche
of a population).  The individuals are modelled with a multivariate normal
distribution, fitted by MCMC with an informative prior on the precision
matrix, either directly ("empirical" hypervolume) or with a hierarchical
model in which individual means vary around group means ("grouped"
hypervolume).  The hypervolume is the ellipsoid that holds 95% (by default) of
the probability mass of the fitted distribution.  New observations may then be
tested for inclusion in a fitted hypervolume.

To use this package:
from BayesHypervolume import fit_hypervolume, calculate_inclusion
help(fit_hypervolume)
"""


from .BH0_Main import fit_hypervolume, calculate_inclusion, BH_logger
from .BH4_Hypervolume import BH_Hypervolume
from ._version import __version__

# N.B. The docstring at the top may be accessed interactively in ipython3 with:
# >>> import BayesHypervolume
# >>> BayesHypervolume?
