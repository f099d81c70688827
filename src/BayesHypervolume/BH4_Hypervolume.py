import logging

import numpy as np  # Core numerical library
from scipy.special import gamma  # Gamma function
from scipy.stats import chi2


"""
Code to reduce posterior draws to point estimates and to calculate the volume
of the fitted hypervolume.  This module defines the BH_Hypervolume class,
which holds the results of fitting and is returned to the user.
"""



BH_logger = logging.getLogger("BayesHypervolume")

# Chains with an R-hat above this for the precision matrix trigger a warning
RHAT_WARNING_LEVEL = 1.1



def calculate_ellipsoid_volume(covariance, ci_level=0.95):
    """
    Calculate the volume of the ellipsoid that contains a proportion ci_level
    of the probability mass of a multivariate normal distribution.
    covariance: The (symmetric positive-definite) covariance matrix.
    ci_level: Probability mass inside the ellipsoid, between 0 and 1.
    The semi-axis lengths are sqrt(q * eigenvalue) for each eigenvalue of the
    covariance matrix, where q is the ci_level quantile of the chi-squared
    distribution with d degrees of freedom.  The volume of a d-dimensional
    ellipsoid is (2/d) * pi^(d/2) / Gamma(d/2) * (product of semi-axes), which
    is pi*a*b for d = 2 and 4/3*pi*a*b*c for d = 3.  Using the Gamma function
    means odd and even d are both supported.
    Returns the volume as a float.
    """
    covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
    d = covariance.shape[0]
    if not 0 < ci_level < 1:
        raise ValueError("ci_level must be between 0 and 1")
    check_covariance(covariance)
    eigenvalues = np.linalg.eigvalsh(covariance)
    semi_axes = np.sqrt(chi2.ppf(ci_level, df=d) * eigenvalues)
    volume = 2. / d * np.pi**(d / 2.) / gamma(d / 2.) * np.prod(semi_axes)
    if not np.isfinite(volume):
        raise ValueError("The hypervolume is not finite")
    return float(volume)



def check_covariance(covariance):
    """
    Ensure a covariance matrix is finite, symmetric and positive definite.
    """
    if not np.all(np.isfinite(covariance)):
        raise ValueError("The covariance matrix is not entirely finite")
    if not np.allclose(covariance, covariance.T):
        raise ValueError("The covariance matrix is not symmetric")
    if np.linalg.eigvalsh(covariance).min() <= 0:
        raise ValueError("The covariance matrix is not positive definite")



def _read_only(arr):
    """ Return a copy of an array that can't be modified in-place """
    if arr is None:
        return None
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr



class BH_Hypervolume(object):
    """
    Class to hold a fitted hypervolume: the posterior estimates of the means
    and the covariance matrix, and the volume of the ellipsoid containing
    ci_level (by default 95%) of the probability mass of the fitted
    multivariate normal distribution.
    An instance of this class is returned to the user each time
    BayesHypervolume.fit_hypervolume is run.  The instance is read-only.
    """
    def __init__(self, means, covariance, dimensions, Y, samples=None,
                 group_means=None, group_variances=None, group_names=None,
                 ci_level=0.95, diagnostics=None):
        """
        Initialise an instance of the class.  See the docstring of
        BayesHypervolume.fit_hypervolume for a description of the attributes.
        """
        covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
        check_covariance(covariance)
        if not 0 < ci_level < 1:
            raise ValueError("ci_level must be between 0 and 1")
        self._covariance = _read_only(covariance)
        self._means = _read_only(means)
        self._Y = _read_only(Y)
        self._dimensions = tuple(dimensions)
        assert self._means.shape[-1] == len(self._dimensions)
        self._samples = samples
        self._group_means = _read_only(group_means)
        self._group_variances = _read_only(group_variances)
        self._group_names = None if group_names is None else tuple(group_names)
        self._ci_level = ci_level
        self._diagnostics = dict(diagnostics or {})
        # Ensure the volume can be calculated:
        calculate_ellipsoid_volume(self._covariance, self._ci_level)

    means = property(lambda self: self._means)
    covariance = property(lambda self: self._covariance)
    Y = property(lambda self: self._Y)
    samples = property(lambda self: self._samples)
    group_means = property(lambda self: self._group_means)
    group_variances = property(lambda self: self._group_variances)
    group_names = property(lambda self: self._group_names)
    ci_level = property(lambda self: self._ci_level)
    diagnostics = property(lambda self: dict(self._diagnostics))

    @property
    def dimensions(self):
        return list(self._dimensions)

    @property
    def ndim(self):
        return len(self._dimensions)

    @property
    def is_grouped(self):
        return self._group_means is not None

    @property
    def volume(self):
        """ Volume of the hypervolume, calculated from the covariance """
        return calculate_ellipsoid_volume(self._covariance, self._ci_level)

    def __repr__(self):
        kind = "grouped" if self.is_grouped else "empirical"
        return "BH_Hypervolume({0}, dimensions={1}, volume={2:.5g})".format(
                                            kind, self.dimensions, self.volume)



def summarise_samples(Samples, Model, ci_level=0.95):
    """
    Reduce posterior draws to point estimates and construct the hypervolume.
    Each monitored quantity is averaged over all chains and retained draws.
    The covariance matrix is the inverse of the posterior mean precision
    matrix.  In the grouped model the between-individual variances are the
    reciprocals of the posterior mean precisions.
    Samples: A BH3_Gibbs.BH_Samples instance
    Model: The BH2_Model.BH_Model_spec instance that was sampled
    Returns a BH_Hypervolume instance.
    """
    for name in Model.monitor:
        if name not in Samples:
            raise ValueError("The sampler didn't return draws for "
                             "'{0}'".format(name))

    tau_mean = np.atleast_2d(Samples.posterior_mean("tau"))
    if not np.all(np.isfinite(tau_mean)):
        raise ValueError("The posterior mean precision matrix is not finite")
    covariance = np.linalg.inv(tau_mean)
    covariance = (covariance + covariance.T) / 2.  # Remove rounding asymmetry
    check_covariance(covariance)

    diagnostics = calculate_diagnostics(Samples, Model)
    kwargs = {"samples": Samples, "ci_level": ci_level,
              "diagnostics": diagnostics}
    if Model.kind == "grouped":
        kwargs["group_means"] = Samples.posterior_mean("mu_1")
        kwargs["group_variances"] = 1. / Samples.posterior_mean("tau_1")
        kwargs["group_names"] = Model.data.get("group_names")

    return BH_Hypervolume(Samples.posterior_mean("mu"), covariance,
                          Model.dimensions, Model.data["Y"], **kwargs)



def calculate_diagnostics(Samples, Model):
    """
    Calculate the maximum Gelman-Rubin R-hat over the elements of each
    monitored quantity, and warn if the precision matrix chains don't appear
    to have converged.  Returns an empty dict if there are too few chains or
    draws.
    """
    if Samples.n_chains < 2 or Samples.n_kept < 2:
        BH_logger.debug("Too few chains or draws to calculate R-hat")
        return {}
    diagnostics = {}
    for name in Model.monitor:
        rhat = Samples.rhat(name)
        finite = rhat[np.isfinite(rhat)]
        diagnostics["rhat_" + name] = float(finite.max()) if finite.size else np.nan
    rhat_tau = diagnostics["rhat_tau"]
    BH_logger.info("Maximum R-hat for the precision matrix: {0:.3f}".format(
                                                                   rhat_tau))
    if rhat_tau > RHAT_WARNING_LEVEL:
        BH_logger.warning("WARNING: The precision matrix chains may not have "
                          "converged (R-hat {0:.3f} > {1}); consider more "
                          "burn-in or iterations".format(rhat_tau,
                                                         RHAT_WARNING_LEVEL))
    return diagnostics
