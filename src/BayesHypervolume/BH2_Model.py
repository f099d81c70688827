import logging
import numpy as np  # Core numerical library


"""
Code to describe the Bayesian models used to estimate a hypervolume, as part
of hypervolume fitting.  A model description holds the prior parameters, the
data payload, the initial values and the names of the monitored quantities,
and is handed to a sampler.

Two models are available:
 - "empirical": each individual has its own mean vector (with a flat normal
   prior), and all individuals share a precision matrix.
 - "grouped": individual means are drawn around group means, with a separate
   between-individual precision for each variable, and all individuals share
   a precision matrix.
In both models the shared precision matrix has an informative Wishart prior
centred on the empirical covariance of the data.
"""



BH_logger = logging.getLogger("BayesHypervolume")

# Precision of the flat normal priors on means
MEAN_PRIOR_PRECISION = 1e-4
# Upper bound of the uniform prior on the between-individual standard
# deviations in the grouped model
SIGMA_1_UPPER = 1.0
# Diagonal value of the initial precision matrix
TAU_INIT_DIAG = 0.1

MONITORED = {"empirical": ["tau", "mu"],
             "grouped":   ["mu", "tau", "tau_1", "mu_1"]}

_MODEL_TEXT = {
"empirical": """\
for i in 1..N:
    Y[i, 1:J] ~ MVN(mu[i, 1:J], inverse(tau))
    for j in 1..J:
        mu[i, j] ~ Normal(0, precision={mean_prec:g})
tau ~ Wishart(R, df={df})    # R = empirical covariance * {df}""",
"grouped": """\
for k in 1..K:
    for i in 1..N:
        Y[i, k, 1:J] ~ MVN(mu[i, k, 1:J], inverse(tau))    # if observed
        for j in 1..J:
            mu[i, k, j] ~ Normal(mu_1[k, j], precision=tau_1[j])
    for j in 1..J:
        mu_1[k, j] ~ Normal(0, precision={mean_prec:g})
tau ~ Wishart(R, df={df})    # R = empirical covariance * {df}
for j in 1..J:
    tau_1[j] = 1 / sigma_1[j]^2
    sigma_1[j] ~ Uniform(0, {sigma_upper:g})""",
}



class BH_Model_spec(object):
    """
    Class to hold an in-memory description of a hypervolume model, ready to
    be passed to a sampler.

    Attributes
    ----------
    kind : "empirical" or "grouped"
    data : dict holding the data payload: "Y" (the observation array), the
           sizes "N", "J" (and "K" when grouped), and "observed" (boolean mask
           of the observed individuals/slots)
    priors : dict of prior parameters: "wishart_R" (inverse-scale matrix),
             "wishart_df", "mean_precision" (and "sigma_1_upper" if grouped)
    inits : dict of initial values ("tau")
    monitor : list of the names of the quantities to return from sampling
    dimensions : list of the variable names
    """
    def __init__(self, kind, data, priors, inits, dimensions):
        if kind not in MONITORED:
            raise ValueError("Unknown model kind '{0}'".format(kind))
        self.kind = kind
        self.data = data
        self.priors = priors
        self.inits = inits
        self.monitor = list(MONITORED[kind])
        self.dimensions = list(dimensions)

    @property
    def ndim(self):
        return self.data["J"]

    def __str__(self):
        """ Human-readable description of the generative model """
        text = _MODEL_TEXT[self.kind].format(
                    mean_prec=self.priors["mean_precision"],
                    df=self.priors["wishart_df"],
                    sigma_upper=self.priors.get("sigma_1_upper", SIGMA_1_UPPER))
        sizes = ", ".join("{0}={1}".format(k, self.data[k])
                          for k in ["N", "K", "J"] if k in self.data)
        return "{0} model ({1}):\n{2}".format(self.kind, sizes, text)



def calculate_wishart_prior(covariance):
    """
    Calculate the parameters of the informative Wishart prior on the shared
    precision matrix.
    covariance: The empirical covariance matrix of the observations.
    Returns a tuple (R, df).  R is the inverse-scale matrix and df the degrees
    of freedom, in the parameterisation with density proportional to
    |tau|^((df - d - 1)/2) * exp(-trace(R tau)/2), so that the prior mean of
    the precision matrix is df * inverse(R), i.e. the inverse of the
    empirical covariance.
    """
    covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
    ndim = covariance.shape[0]
    if covariance.shape != (ndim, ndim):
        raise ValueError("The covariance matrix must be square")
    if not np.allclose(covariance, covariance.T):
        raise ValueError("The covariance matrix is not symmetric")
    # The empirical covariance must be invertible for the prior to be proper
    eigenvalues = np.linalg.eigvalsh(covariance)
    if eigenvalues.min() <= 1e-12 * np.abs(eigenvalues).max():
        raise ValueError("The empirical covariance matrix of the variables is"
                         " not positive definite; are some variables constant"
                         " or linearly dependent?")
    df = ndim + 1
    R = covariance * df
    return R, df



def build_empirical_model(Data):
    """
    Describe the model without groups.  Each individual's vector of variables
    comes from a multivariate normal with an individual-specific mean and a
    shared precision matrix.
    Data: A BH1_Process_data.Data_description instance without groups
    Returns a BH_Model_spec instance.
    """
    assert not Data.is_grouped
    R, df = calculate_wishart_prior(Data.covariance)
    N, J = Data.Y.shape
    data = {"Y": Data.Y, "N": N, "J": J, "observed": Data.observed}
    priors = {"wishart_R": R, "wishart_df": df,
              "mean_precision": MEAN_PRIOR_PRECISION}
    inits = {"tau": np.diag(np.full(J, TAU_INIT_DIAG))}
    return BH_Model_spec("empirical", data, priors, inits, Data.dimensions)



def build_grouped_model(Data):
    """
    Describe the hierarchical model with groups.  Individual means vary
    around group means, independently for each variable, and the group means
    have flat normal priors.  The precision matrix shared by all individuals
    (which determines the hypervolume) has the same informative prior as in
    the empirical model.
    Data: A BH1_Process_data.Data_description instance with groups
    Returns a BH_Model_spec instance.
    """
    assert Data.is_grouped
    R, df = calculate_wishart_prior(Data.covariance)
    N, K, J = Data.Y.shape
    data = {"Y": Data.Y, "N": N, "K": K, "J": J, "observed": Data.observed,
            "group_names": list(Data.group_names)}
    priors = {"wishart_R": R, "wishart_df": df,
              "mean_precision": MEAN_PRIOR_PRECISION,
              "sigma_1_upper": SIGMA_1_UPPER}
    inits = {"tau": np.diag(np.full(J, TAU_INIT_DIAG))}
    return BH_Model_spec("grouped", data, priors, inits, Data.dimensions)



def build_model(Data):
    """
    Build the model description for the scenario: "grouped" if the data have
    a grouping variable, otherwise "empirical".
    """
    if Data.is_grouped:
        Model = build_grouped_model(Data)
    else:
        Model = build_empirical_model(Data)
    BH_logger.debug(str(Model))
    return Model
