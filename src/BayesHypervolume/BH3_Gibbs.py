import logging

import numpy as np  # Core numerical library
from scipy import stats


"""
Code to sample the posterior of a hypervolume model (described by a
BH2_Model.BH_Model_spec instance) with a blocked Gibbs sampler, and a class to
hold the resulting draws.

Every full conditional distribution is conjugate except the one for the
between-individual precisions in the grouped model, which is a truncated
gamma distribution (from the uniform prior on the standard deviations):
 - individual means: multivariate normal
 - shared precision matrix: Wishart
 - group means: normal
 - between-individual precisions: gamma truncated to [1/sigma_1_upper^2, inf)

Padded (unobserved) slots of the grouped data array contribute nothing to the
likelihood; their individual means are drawn from their prior given the group
means.  This is the collapsed form of imputing the missing observations.

Any other callable with the same call signature as Gibbs_sampler.__call__ may
be passed to BayesHypervolume.fit_hypervolume as the "sampler".
"""



BH_logger = logging.getLogger("BayesHypervolume")



class BH_Samples(object):
    """
    Class to hold posterior draws from a sampler.  The "draws" attribute is a
    dict mapping each monitored quantity name to an array of shape
    (n_chains, n_kept, *parameter_shape).
    """
    def __init__(self, draws, n_burn=0, n_thin=1):
        if len(draws) == 0:
            raise ValueError("No monitored quantities in posterior draws")
        self.draws = dict(draws)
        first = list(self.draws.values())[0]
        self.n_chains, self.n_kept = first.shape[:2]
        for name, arr in self.draws.items():
            if arr.shape[:2] != (self.n_chains, self.n_kept):
                raise ValueError("Draws for {0} have shape {1}; expected "
                                 "(n_chains, n_kept) = {2} for the first two "
                                 "axes".format(name, arr.shape,
                                               (self.n_chains, self.n_kept)))
        if self.n_kept == 0:
            raise ValueError("No posterior draws were retained")
        self.n_burn = n_burn
        self.n_thin = n_thin


    def __getitem__(self, name):
        return self.draws[name]


    def __contains__(self, name):
        return name in self.draws


    def posterior_mean(self, name):
        """
        Average a monitored quantity over all chains and retained draws.
        """
        return self.draws[name].mean(axis=(0, 1))


    def rhat(self, name):
        """
        Gelman-Rubin potential scale reduction factor for each element of a
        monitored quantity.  Values near 1 suggest the chains have mixed.
        Requires at least two chains with at least two draws each.  Elements
        that are constant within every chain give NaN.
        """
        arr = self.draws[name]
        if self.n_chains < 2 or self.n_kept < 2:
            raise ValueError("R-hat needs at least 2 chains with 2 draws each")
        n = self.n_kept
        chain_means = arr.mean(axis=1)
        W = arr.var(axis=1, ddof=1).mean(axis=0)  # Within-chain variance
        B = n * chain_means.var(axis=0, ddof=1)   # Between-chain variance
        var_hat = (n - 1.) / n * W + B / n
        # W may be a rounding remainder rather than zero for constant chains
        constant = np.ptp(arr, axis=1).max(axis=0) == 0
        with np.errstate(divide="ignore", invalid="ignore"):
            rhat = np.sqrt(var_hat / W)
        return np.where(constant, np.nan, rhat)



class Gibbs_sampler(object):
    """
    Blocked Gibbs sampler for the "empirical" and "grouped" hypervolume models.
    Instances are called with a model description and the MCMC settings, and
    return a BH_Samples instance.
    """
    def __init__(self, n_progress_reports=10):
        """
        n_progress_reports: Number of progress messages logged (at DEBUG level)
                            while sampling each chain.
        """
        self.n_progress_reports = n_progress_reports


    def __call__(self, Model, n_chains, n_iter, n_burn, n_thin, rng):
        """
        Run the sampler.
        Model: A BH2_Model.BH_Model_spec instance
        n_chains: Number of independent chains
        n_iter: Number of iterations after burn-in, per chain
        n_burn: Number of burn-in iterations to discard at the start of each
                chain
        n_thin: Thinning interval; every n_thin-th iteration after burn-in is
                kept, so n_iter // n_thin draws are kept per chain
        rng: numpy.random.Generator instance
        Returns a BH_Samples instance holding the draws of Model.monitor.
        """
        steps = {"empirical": _step_empirical, "grouped": _step_grouped}
        step = steps[Model.kind]
        n_kept = n_iter // n_thin
        assert n_kept > 0

        state_0 = _initial_state(Model, rng)
        draws = {name: np.empty((n_chains, n_kept) + state_0[name].shape)
                 for name in Model.monitor}
        n_total = n_burn + n_iter
        report_every = max(1, n_total // max(1, self.n_progress_reports))

        for chain in range(n_chains):
            BH_logger.info("Running Gibbs sampler chain {0} of {1} ({2} burn-in"
                           " and {3} iterations)...".format(chain + 1,
                                                  n_chains, n_burn, n_iter))
            state = state_0 if chain == 0 else _initial_state(Model, rng)
            i_kept = 0
            for i in range(n_total):
                step(Model, state, rng)
                i_post = i - n_burn + 1  # Iterations completed after burn-in
                if i_post > 0 and i_post % n_thin == 0 and i_kept < n_kept:
                    for name in Model.monitor:
                        draws[name][chain, i_kept] = state[name]
                    i_kept += 1
                if (i + 1) % report_every == 0:
                    BH_logger.debug("    Step {0} ({1:5.1%})".format(i + 1,
                                                           (i + 1) / n_total))
            assert i_kept == n_kept

        return BH_Samples(draws, n_burn=n_burn, n_thin=n_thin)



def _initial_state(Model, rng):
    """
    Initial values for a chain.  The precision matrix starts at the value in
    Model.inits; the other quantities start near the data (means) or are drawn
    from their prior (between-individual standard deviations).  Individual
    means are overwritten in the first step.
    """
    data = Model.data
    Y = data["Y"]
    state = {"tau": np.array(Model.inits["tau"], dtype=float)}
    if Model.kind == "empirical":
        state["mu"] = Y.copy()
        return state

    J = data["J"]
    # Group means start at the observed group means with a little jitter
    Y_sd = np.sqrt(np.diag(Model.priors["wishart_R"]) /
                   Model.priors["wishart_df"])
    mu_1 = np.nanmean(Y, axis=0)  # Shape (K, J)
    mu_1 = mu_1 + rng.standard_normal(mu_1.shape) * Y_sd * 0.01
    sigma_1 = rng.uniform(0, Model.priors["sigma_1_upper"], size=J)
    sigma_1 = np.maximum(sigma_1, 1e-3)
    state["mu_1"] = mu_1
    state["tau_1"] = 1. / sigma_1**2
    state["mu"] = np.where(np.isnan(Y), mu_1[np.newaxis, :, :], Y)
    return state



def _step_empirical(Model, state, rng):
    """
    One Gibbs sweep for the empirical model, updating state in-place.
    """
    Y = Model.data["Y"]
    N, J = Y.shape
    priors = Model.priors
    tau = state["tau"]

    # Individual means: mu[i] | Y, tau ~ MVN(P^-1 tau Y[i], P^-1), with
    # P = tau + lambda I from the flat normal prior
    cov_post = _inv_sym(tau + priors["mean_precision"] * np.eye(J))
    mean_post = Y @ (cov_post @ tau).T
    state["mu"] = _sample_mvn_rows(mean_post, cov_post, rng)

    # Shared precision matrix
    resid = Y - state["mu"]
    state["tau"] = _sample_wishart(priors["wishart_df"] + N,
                                   priors["wishart_R"] + resid.T @ resid, rng)



def _step_grouped(Model, state, rng):
    """
    One Gibbs sweep for the grouped model, updating state in-place.
    """
    data, priors = Model.data, Model.priors
    Y, observed = data["Y"], data["observed"]
    N, K, J = Y.shape
    tau, tau_1, mu_1 = state["tau"], state["tau_1"], state["mu_1"]
    k_obs = np.nonzero(observed)[1]  # Group index of each observed slot
    k_pad = np.nonzero(~observed)[1]
    mu = np.empty_like(Y)

    # Individual means of observed slots combine the likelihood and the
    # group-level prior: P = tau + diag(tau_1)
    cov_post = _inv_sym(tau + np.diag(tau_1))
    Y_obs = Y[observed]  # Shape (n_obs, J)
    mean_post = (Y_obs @ tau + mu_1[k_obs] * tau_1) @ cov_post
    mu[observed] = _sample_mvn_rows(mean_post, cov_post, rng)
    # Padded slots: prior given the group means
    mu[~observed] = (mu_1[k_pad] +
                     rng.standard_normal((k_pad.size, J)) / np.sqrt(tau_1))
    state["mu"] = mu

    # Shared precision matrix, from the observed slots only
    resid = Y_obs - mu[observed]
    state["tau"] = _sample_wishart(priors["wishart_df"] + k_obs.size,
                                   priors["wishart_R"] + resid.T @ resid, rng)

    # Group means
    prec_1 = priors["mean_precision"] + N * tau_1  # Shape (J,)
    mean_1 = tau_1 * mu.sum(axis=0) / prec_1       # Shape (K, J)
    state["mu_1"] = mean_1 + rng.standard_normal((K, J)) / np.sqrt(prec_1)

    # Between-individual precisions.  With sigma_1 ~ Uniform(0, s) and
    # tau_1 = sigma_1^-2, the full conditional of tau_1[j] is
    # Gamma(shape=(N*K - 1)/2, rate=SS_j/2) truncated to tau_1 >= s^-2.
    SS = np.sum((mu - state["mu_1"][np.newaxis, :, :])**2, axis=(0, 1))
    state["tau_1"] = _sample_truncated_gamma((N * K - 1) / 2., SS / 2.,
                                    1. / priors["sigma_1_upper"]**2, rng)



def _inv_sym(A):
    """ Invert a symmetric positive-definite matrix, keeping it symmetric """
    A_inv = np.linalg.inv(A)
    return (A_inv + A_inv.T) / 2.



def _sample_mvn_rows(means, cov, rng):
    """
    Draw one multivariate normal vector for each row of "means", all with the
    same covariance matrix.
    """
    L = np.linalg.cholesky(cov)
    return means + rng.standard_normal(means.shape) @ L.T



def _sample_wishart(df, R, rng):
    """
    Draw a precision matrix from a Wishart distribution with inverse-scale
    matrix R and df degrees of freedom (mean df * R^-1).
    """
    J = R.shape[0]
    draw = stats.wishart.rvs(df=df, scale=_inv_sym(R), random_state=rng)
    return np.reshape(draw, (J, J))



def _sample_truncated_gamma(shape, rate, lower, rng):
    """
    Draw from gamma distributions (one per element of "rate") truncated to
    [lower, inf), by inverting the survival function.
    """
    rate = np.atleast_1d(np.asarray(rate, dtype=float))
    dist = stats.gamma(a=shape, scale=1. / rate)
    tail = dist.sf(lower)
    u = 1. - rng.uniform(size=rate.shape)  # In (0, 1]
    x = dist.isf(u * tail)
    # Where the tail probability underflows, all the truncated mass is at the
    # lower bound
    bad = ~np.isfinite(x) | (tail == 0) | (x < lower)
    x[bad] = lower
    return x
