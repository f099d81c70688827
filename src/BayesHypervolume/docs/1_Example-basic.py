import os
import numpy as np
import pandas as pd
from BayesHypervolume import fit_hypervolume, calculate_inclusion


"""
This script shows examples of basic usage of BayesHypervolume.

There are examples of how to:
 - Fit an "empirical" hypervolume to a table of individuals measured on three
   variables, and test new individuals for inclusion in it
 - Fit a "grouped" hypervolume, where individuals belong to populations with
   different mean values

The observations are simulated, so the results can be compared with the
distribution they were drawn from.

This script may be run unchanged to save output in the BayesHypervolume/docs
directory.  Otherwise add a custom "OUT_DIR" below.
"""


# By default save the output files in the BayesHypervolume/docs subdirectory,
# assuming this file is still in that directory.
DOCS_PATH = os.path.dirname(os.path.realpath(__file__))
OUT_DIR = DOCS_PATH

rng = np.random.default_rng(1)
variables = ["beak_length", "beak_depth", "wing_length"]
cov_true = np.array([[1.0, 0.4, 0.2],
                     [0.4, 0.8, 0.1],
                     [0.2, 0.1, 1.5]])



##############################################################################
print("\nRunning empirical hypervolume example...")
# Fifty individuals drawn from a single population
DF_obs = pd.DataFrame(rng.multivariate_normal([10., 8., 60.], cov_true,
                                              size=50), columns=variables)

# The default MCMC settings (3 chains of 100000 iterations after 20000 burn-in
# iterations, thinned by 20) are slow; fewer iterations are used here.
kwargs = {"n_iter": 20000, "n_burn": 5000, "n_thin": 10, "rng": 2,
          "chain_plot": os.path.join(OUT_DIR, "1_empirical_chains.png"),
          "hypervolume_plot": os.path.join(OUT_DIR, "1_empirical_volume.png"),
          }
Hypervolume = fit_hypervolume(DF_obs, variables, **kwargs)
print(Hypervolume)
print("Covariance matrix:\n", Hypervolume.covariance)

# Test whether new individuals belong to the hypervolume.  The second is far
# from the population, so its inclusion probability should be small.
DF_new = pd.DataFrame({"beak_length": [10.2, 16.], "beak_depth": [8.1, 2.],
                       "wing_length": [59.5, 70.], "ID": ["N1", "N2"]})
DF_new = calculate_inclusion(Hypervolume, DF_new, n_draws=999, rng=3)
print(DF_new)



##############################################################################
print("\nRunning grouped hypervolume example...")
# Three populations of different sizes, with different mean values
tables = []
for name, shift, n in [("north", 0., 15), ("south", 2., 10), ("east", 4., 8)]:
    DF_g = pd.DataFrame(rng.multivariate_normal(np.array([10., 8., 60.]) +
                                shift, cov_true, size=n), columns=variables)
    DF_g["population"] = name
    tables.append(DF_g)
DF_obs = pd.concat(tables, ignore_index=True)

kwargs["chain_plot"] = os.path.join(OUT_DIR, "1_grouped_chains.png")
kwargs["hypervolume_plot"] = os.path.join(OUT_DIR, "1_grouped_volume.png")
Hypervolume_g = fit_hypervolume(DF_obs, variables, groups="population",
                                **kwargs)
print(Hypervolume_g)
# Groups are in the sorted order of their labels:
print(pd.DataFrame(Hypervolume_g.group_means, columns=variables,
                   index=Hypervolume_g.group_names))
print("Convergence diagnostics:", Hypervolume_g.diagnostics)
