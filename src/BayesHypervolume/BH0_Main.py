import logging
import numbers

import numpy as np  # Core numerical library
import pandas as pd # For tables ("DataFrame"s)
from . import BH1_Process_data
from . import BH2_Model
from .BH3_Gibbs import Gibbs_sampler
from .BH4_Hypervolume import summarise_samples
from .BH5_Inclusion import Progress_logger, calculate_inclusion_probabilities
from .BH6_Plotting import plot_chains, plot_hypervolume
from ._version import __version__



# Default MCMC settings
DEFAULT_N_CHAINS = 3
DEFAULT_N_ITER = 100000
DEFAULT_N_BURN = 20000
DEFAULT_N_THIN = 20
DEFAULT_CI_LEVEL = 0.95
DEFAULT_N_DRAWS = 999
DEFAULT_PROB_COLUMN = "P_inclusion"
DEFAULT_VERBOSITY = "INFO"



def fit_hypervolume(data_table, variables, groups=None, **kwargs):
    """
    Estimate the hypervolume occupied by a set of individuals in the space of
    the chosen variables.  The individuals are modelled with a multivariate
    normal distribution, fitted by MCMC, and the hypervolume is the ellipsoid
    holding ci_level of its probability mass.

    Basic parameters
    ----------------
    data_table : str filename or a pandas DataFrame
        The table of observations, with a row for each individual and a
        column for each variable.  Allowed inputs are a filename for a csv,
        FITS (.fits) or compressed FITS (.fits.gz) file, or a pre-loaded
        pandas DataFrame instance.  Unnecessary columns are ignored.  All
        rows must be complete in the columns that are used.
    variables : list of strings
        The names of the variables defining the hypervolume, which must match
        column names in data_table.  The order of the list sets the order of
        the dimensions in the results.
    groups : str or None, optional
        The name of a column of group labels.  If given, a hierarchical model
        is used in which individual means vary around group means, and the
        groups may have different sizes.  Default: None (no grouping, which
        gives an "empirical" hypervolume).

    Optional parameters
    -------------------
    n_chains : int
        Number of independent MCMC chains.  Default: 3
    n_iter : int
        Number of MCMC iterations per chain after burn-in.  Default: 100000
    n_burn : int
        Number of burn-in iterations discarded at the start of each chain.
        Default: 20000
    n_thin : int
        Thinning interval; n_iter // n_thin draws are kept per chain.
        Default: 20
    ci_level : float between 0 and 1
        The proportion of the probability mass of the fitted distribution
        inside the hypervolume ellipsoid.  Default: 0.95
    sampler : callable
        Called as sampler(Model, n_chains, n_iter, n_burn, n_thin, rng) with a
        BH2_Model.BH_Model_spec instance, and returning a BH3_Gibbs.BH_Samples
        instance.  Default: a BH3_Gibbs.Gibbs_sampler instance.
    rng : int, numpy.random.Generator instance or None
        Seed or generator for all random numbers.  Default: None (fresh
        entropy from the operating system)
    chain_plot : str
        A filename for trace plots of the sampled precision matrix elements.
        The image file type is specified by the file extension.
    hypervolume_plot : str
        A filename for a 'corner' plot of the 2D projections of the fitted
        hypervolume, with the observations.
    verbosity : str
        Determine how much information is printed to the terminal by setting
        the level of the BayesHypervolume logger.  Allowed levels (in order of
        more to less output) are "DEBUG", "INFO" and "WARNING".  The logger
        object may be accessed as BayesHypervolume.BH_logger.
        Default: "INFO"

    Returns
    -------
    Hypervolume : BH4_Hypervolume.BH_Hypervolume instance
    This read-only object holds the results, with the attributes:
        volume : float
            The volume of the ci_level ellipsoid
        means : numpy array
            Posterior mean of each individual's mean vector, with shape
            (n_individuals, n_dims), or (max_group_size, n_groups, n_dims)
            when grouped (padded slots included)
        covariance : numpy array
            The inverse of the posterior mean precision matrix
        dimensions : list of the variable names
        Y : numpy array
            The observation array passed to the sampler (NaN-padded when
            grouped)
        samples : BH3_Gibbs.BH_Samples instance
            The retained posterior draws of each monitored quantity
        group_means, group_variances, group_names : numpy array, numpy array,
            tuple (None without groups).  Posterior mean group means (shape
            (n_groups, n_dims)), between-individual variances (shape
            (n_dims,)) and the sorted group labels.
        ci_level : float
        diagnostics : dict of the maximum Gelman-Rubin R-hat for each
            monitored quantity (empty for a single chain)
    """
    n_chains = kwargs.pop("n_chains", DEFAULT_N_CHAINS)
    n_iter = kwargs.pop("n_iter", DEFAULT_N_ITER)
    n_burn = kwargs.pop("n_burn", DEFAULT_N_BURN)
    n_thin = kwargs.pop("n_thin", DEFAULT_N_THIN)
    for name, value, minimum in [("n_chains", n_chains, 1), ("n_iter", n_iter, 1),
                                 ("n_burn", n_burn, 0), ("n_thin", n_thin, 1)]:
        _check_integer(name, value, minimum)
    if n_iter < n_thin:
        raise ValueError("n_iter must be at least n_thin, so that at least one"
                         " draw is kept per chain")

    ci_level = kwargs.pop("ci_level", DEFAULT_CI_LEVEL)
    if not 0 < ci_level < 1:
        raise ValueError("ci_level must be between 0 and 1")

    sampler = kwargs.pop("sampler", None)
    if sampler is None:
        sampler = Gibbs_sampler()
    if not callable(sampler):
        raise TypeError("sampler must be callable")

    rng = _make_rng(kwargs.pop("rng", None))
    output_locations = {}
    for key in ["chain_plot", "hypervolume_plot"]:
        output_locations[key] = kwargs.pop(key, None)
        # Default None means "Don't produce the relevant output"

    verbosity = _pop_verbosity(kwargs)
    _check_unknown_kwargs(kwargs)

    variables = _check_variables(variables, groups)

    #--------------------------------------------------------------------------
    BH_logger.setLevel(verbosity)
    try:
        BH_logger.info("Running BayesHypervolume (v{0}) fitting...".format(
                                                                  __version__))
        Data = BH1_Process_data.initialise_data(data_table, variables, groups)
        BH_logger.info("Using {0} observations of {1} variables{2}".format(
            Data.n_obs, Data.ndim, "" if not Data.is_grouped else
            " in {0} groups".format(len(Data.group_names))))
        Model = BH2_Model.build_model(Data)

        BH_logger.info("Sampling the posterior of the {0} model...".format(
                                                                  Model.kind))
        Samples = sampler(Model, n_chains, n_iter, n_burn, n_thin, rng)
        Hypervolume = summarise_samples(Samples, Model, ci_level=ci_level)
        BH_logger.info("Hypervolume ({0:.0%} ellipsoid): {1:.5g}".format(
                                               ci_level, Hypervolume.volume))

        # Plot diagnostics if requested:
        if output_locations["chain_plot"] is not None:
            BH_logger.info("Plotting MCMC chains...")
            plot_chains(Samples, output_locations["chain_plot"], name="tau",
                        dimensions=Hypervolume.dimensions)
        if output_locations["hypervolume_plot"] is not None:
            BH_logger.info("Plotting the hypervolume...")
            plot_hypervolume(Hypervolume, output_locations["hypervolume_plot"])

        BH_logger.info("BayesHypervolume fitting finished.")
    finally:
        BH_logger.setLevel(DEFAULT_VERBOSITY)  # Reset
    return Hypervolume



def calculate_inclusion(Hypervolume, new_data, n_draws=DEFAULT_N_DRAWS,
                        **kwargs):
    """
    Calculate the probability that each new observation is included in a
    fitted hypervolume.

    Basic parameters
    ----------------
    Hypervolume : BH4_Hypervolume.BH_Hypervolume instance
        A result from fit_hypervolume
    new_data : pandas DataFrame
        Table of new observations, with a row for each observation.  It must
        contain a column for each name in Hypervolume.dimensions; other
        columns are ignored (but returned).
    n_draws : int
        Number of simulated points each observation is compared with.
        Default: 999

    Optional parameters
    -------------------
    rng : int, numpy.random.Generator instance or None
        Seed or generator for all random numbers.  Default: None
    progress_callback : callable
        Called as progress_callback(n_done, n_total) after each observation
        is tested.  Default: log progress through BayesHypervolume.BH_logger
    max_pool_size : int or None
        Cap on the number of points simulated from the hypervolume (which is
        otherwise max(round(volume), n_draws)).  Default: None (no cap)
    prob_column : str
        Name of the output column.  Default: "P_inclusion"
    verbosity : str
        "DEBUG", "INFO" or "WARNING".  Default: "INFO"

    Returns
    -------
    DF_out : pandas DataFrame
        A copy of new_data (same columns and index) with the inclusion
        probabilities in an extra column.  Probabilities are in (0, 1]; low
        values indicate an outlier, high values a typical observation.
    """
    _check_integer("n_draws", n_draws, 1)
    rng = _make_rng(kwargs.pop("rng", None))
    progress_callback = kwargs.pop("progress_callback", None)
    if progress_callback is None:
        progress_callback = Progress_logger()
    if not callable(progress_callback):
        raise TypeError("progress_callback must be callable")
    max_pool_size = kwargs.pop("max_pool_size", None)
    if max_pool_size is not None:
        _check_integer("max_pool_size", max_pool_size, 1)
    prob_column = kwargs.pop("prob_column", DEFAULT_PROB_COLUMN)
    verbosity = _pop_verbosity(kwargs)
    _check_unknown_kwargs(kwargs)

    if not isinstance(new_data, pd.DataFrame):
        raise TypeError("new_data should be a DataFrame, not a " +
                        str(type(new_data)))
    dimensions = Hypervolume.dimensions
    missing = [d for d in dimensions if d not in new_data.columns]
    if len(missing) > 0:
        raise ValueError("Variable(s) not found in new_data: " +
                         ", ".join(str(d) for d in missing))
    X_new = new_data[dimensions].values.astype("float64")
    if not np.all(np.isfinite(X_new)):
        raise ValueError("new_data contains a non-finite value in the "
                         "hypervolume variables")

    BH_logger.setLevel(verbosity)
    try:
        probs = calculate_inclusion_probabilities(Hypervolume, X_new, n_draws,
                       rng, progress_callback=progress_callback,
                       max_pool_size=max_pool_size)
    finally:
        BH_logger.setLevel(DEFAULT_VERBOSITY)  # Reset

    DF_out = new_data.copy()
    DF_out[prob_column] = probs
    return DF_out



def _check_integer(name, value, minimum):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise TypeError("{0} must be an integer".format(name))
    if value < minimum:
        raise ValueError("{0} must be at least {1}".format(name, minimum))



def _check_variables(variables, groups):
    """
    Check the list of variable names, and that the grouping column isn't
    also a variable.  Returns the variables as a list.
    """
    if isinstance(variables, str):
        raise TypeError("variables must be a list of column names, not a str")
    variables = list(variables)
    if len(variables) == 0:
        raise ValueError("At least one variable is required")
    if len(set(variables)) != len(variables):
        raise ValueError("variables are not all unique")
    if groups is not None and groups in variables:
        raise ValueError("The grouping variable {0} is also listed in "
                         "variables".format(groups))
    return variables



def _make_rng(rng):
    """ Build a numpy random Generator from a seed, Generator or None """
    if isinstance(rng, np.random.Generator):
        return rng
    if rng is None or isinstance(rng, numbers.Integral):
        return np.random.default_rng(rng)
    raise TypeError("rng must be an integer seed, a numpy.random.Generator "
                    "or None")



def _pop_verbosity(kwargs):
    verbosity = kwargs.pop("verbosity", DEFAULT_VERBOSITY)
    if verbosity not in ["DEBUG", "INFO", "WARNING"]:
        raise ValueError("verbosity must be 'DEBUG', 'INFO', or 'WARNING'")
    return verbosity



def _check_unknown_kwargs(kwargs):
    # Any remaining keyword arguments that weren't used?
    if len(kwargs) > 0:
        raise ValueError("Unknown keyword argument(s): " +
                         ", ".join("'{0}'".format(k) for k in kwargs.keys()))



def _configure_logger():
    """
    Create a logger for BayesHypervolume so the user can easily control
    verbosity of the output.  The root logger is left alone.
    """
    BH_logger = logging.getLogger("BayesHypervolume")
    Handler_1 = logging.StreamHandler()
    Handler_1.setLevel(logging.DEBUG)
    # Set a format which works well for console output:
    Formatter_1 = logging.Formatter("%(message)s")
    Handler_1.setFormatter(Formatter_1)
    BH_logger.addHandler(Handler_1)
    BH_logger.setLevel(DEFAULT_VERBOSITY)
    return BH_logger

BH_logger = _configure_logger()

