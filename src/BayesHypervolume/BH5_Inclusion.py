import logging

import numpy as np  # Core numerical library
from scipy import stats


"""
Code to calculate the probability that new observations are included in a
fitted hypervolume.

Points are simulated from the fitted multivariate normal distribution, and a
two-sided tail probability is calculated for each simulated point and each new
observation.  The inclusion probability of a new observation is the empirical
CDF, evaluated at the observation's own tail probability, of a pool made of
n_draws resampled simulated tail probabilities plus the observation's.  Low
values indicate an outlier; values near one indicate a typical point.
"""



BH_logger = logging.getLogger("BayesHypervolume")

# An uncapped pool larger than this multiple of n_draws triggers a warning
POOL_WARNING_FACTOR = 100



class Progress_logger(object):
    """
    Default progress callback for the inclusion test, which logs progress
    through the BayesHypervolume logger roughly every 10% of observations.
    """
    def __init__(self, n_reports=10):
        self.n_reports = n_reports

    def __call__(self, n_done, n_total):
        report_every = max(1, n_total // self.n_reports)
        if n_done % report_every == 0 or n_done == n_total:
            BH_logger.info("    Tested {0} of {1} observations ({2:5.1%})".format(
                                          n_done, n_total, n_done / n_total))



def calculate_reference_mean(Hypervolume):
    """
    Collapse the fitted individual (and group) means to a single mean vector,
    by averaging over all individuals (and group slots) for each variable.
    """
    means = Hypervolume.means
    return means.reshape(-1, means.shape[-1]).mean(axis=0)



def calculate_tail_probabilities(points, Dist, mean):
    """
    Calculate the two-sided tail probability 2 * min(P[X <= x], P[X >= x])
    for each row x of "points", where X follows the multivariate normal
    distribution Dist with the given mean.
    The upper tail uses the central symmetry of the multivariate normal:
    P[X >= x] = P[X <= 2*mean - x].
    The same statistic is used for simulated points and new observations.
    (The factor of 2 doesn't affect the inclusion probabilities, which only
    depend on the ranks of the statistics.)
    """
    points = np.asarray(points, dtype=float)
    lower = np.atleast_1d(Dist.cdf(points))
    upper = np.atleast_1d(Dist.cdf(2 * mean - points))
    return 2 * np.minimum(lower, upper)



def calculate_pool_size(volume, n_draws, max_pool_size=None):
    """
    Number of points to simulate from the hypervolume: max(round(volume),
    n_draws), capped at max_pool_size (but never below n_draws).  Warns if an
    uncapped pool is much larger than n_draws, since simulating the pool and
    evaluating its CDF may then be very slow.
    """
    n_pool = max(int(round(volume)), n_draws)
    if max_pool_size is not None:
        n_pool = max(min(n_pool, max_pool_size), n_draws)
    elif n_pool > POOL_WARNING_FACTOR * n_draws:
        BH_logger.warning("WARNING: The hypervolume ({0:.4g}) requires "
                          "simulating {1} points; consider setting "
                          "max_pool_size".format(volume, n_pool))
    return n_pool



def empirical_cdf(values, x):
    """ Evaluate the empirical CDF of "values" at x """
    return np.mean(np.asarray(values) <= x)



def calculate_inclusion_probabilities(Hypervolume, X_new, n_draws, rng,
                                      progress_callback=None,
                                      max_pool_size=None):
    """
    Calculate the inclusion probability for each new observation.

    Parameters
    ----------
    Hypervolume : BH4_Hypervolume.BH_Hypervolume instance
    X_new : numpy array with shape (n_new, n_dims)
        The new observations, with columns in the order of
        Hypervolume.dimensions.
    n_draws : int
        Number of simulated tail probabilities each observation is compared
        with.
    rng : numpy.random.Generator instance
        Source of all randomness (simulation, resampling and the
        quasi-Monte-Carlo integration of the CDF).
    progress_callback : callable or None
        Called as progress_callback(n_done, n_total) after each observation.
    max_pool_size : int or None
        Optional cap on the number of simulated points (never below n_draws).

    Returns
    -------
    probs : numpy array of inclusion probabilities, shape (n_new,)

    Notes
    -----
    The number of simulated points is max(round(volume), n_draws), so the
    simulated pool scales with the size of the hypervolume.  The pool and its
    tail probabilities are calculated once and shared by all observations;
    each observation resamples n_draws of them without replacement.
    """
    X_new = np.atleast_2d(np.asarray(X_new, dtype=float))
    n_new, ndim = X_new.shape
    assert ndim == Hypervolume.ndim
    assert n_draws >= 1
    if n_new == 0:
        return np.zeros(0)

    mean = calculate_reference_mean(Hypervolume)
    Dist = stats.multivariate_normal(mean=mean, cov=Hypervolume.covariance,
                                     seed=rng)

    n_pool = calculate_pool_size(Hypervolume.volume, n_draws, max_pool_size)
    BH_logger.info("Simulating {0} points from the hypervolume...".format(
                                                                      n_pool))
    pool = np.reshape(Dist.rvs(size=n_pool), (n_pool, ndim))
    pool_probs = calculate_tail_probabilities(pool, Dist, mean)
    new_probs = calculate_tail_probabilities(X_new, Dist, mean)

    BH_logger.info("Testing inclusion of {0} new observations...".format(n_new))
    probs = np.empty(n_new)
    for k in range(n_new):
        inds = rng.choice(n_pool, size=n_draws, replace=False)
        pool_k = np.append(pool_probs[inds], new_probs[k])
        probs[k] = empirical_cdf(pool_k, new_probs[k])
        if progress_callback is not None:
            progress_callback(k + 1, n_new)

    return probs
