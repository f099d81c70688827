import logging

from astropy.io import fits  # For reading FITS binary tables
from astropy.table import Table  # For FITS table to pandas DataFrame conversion
import numpy as np  # Core numerical library
import pandas as pd # For tables ("DataFrame"s)


"""
This module contains code to load the table of observations, check it, and
construct the data arrays that are passed to the sampler: a matrix of
individuals by variables, or (when a grouping variable is used) a padded 3D
array of individuals by groups by variables.
"""


BH_logger = logging.getLogger("BayesHypervolume")



class Data_description(object):
    """
    Class to hold the processed observations and information describing them -
    the names of the variables (dimensions), the group labels, the number of
    individuals in each group, etc.
    """
    def __init__(self, dimensions, Y, covariance, group_column=None,
                 group_names=None, n_per_group=None):
        """
        Initialise an instance with useful attributes.
        dimensions: List of variable names, in the order of the last axis of Y
        Y: Array of observations.  Shape (n_individuals, n_dims) without
           groups; shape (max_group_size, n_groups, n_dims) with groups, with
           NaN in the slots that don't correspond to an observed individual.
        covariance: Empirical covariance matrix of the variables, calculated
                    over all observations (ignoring groups).
        group_column, group_names, n_per_group: Name of the grouping variable,
           the sorted group labels (order of axis 1 of Y) and the number of
           observed individuals in each group.  All None without groups.
        """
        self.dimensions = list(dimensions)
        self.ndim = len(self.dimensions)
        self.Y = Y
        self.covariance = covariance
        self.group_column = group_column
        self.group_names = group_names
        self.n_per_group = n_per_group
        self.is_grouped = group_column is not None
        if self.is_grouped:
            assert Y.ndim == 3 and Y.shape[1] == len(group_names)
            # An individual slot is observed if it isn't padding:
            self.observed = ~np.isnan(Y[:, :, 0])
        else:
            assert Y.ndim == 2
            self.observed = np.ones(Y.shape[0], dtype=bool)
        self.n_obs = int(np.sum(self.observed))
        assert Y.shape[-1] == self.ndim



def initialise_data(data_table, variables, groups):
    """
    Load and check the observations, and build the arrays for model fitting.

    Parameters
    ----------
    data_table : str or pandas DataFrame
        The table of observations, given as the filename of a csv, FITS
        (.fits) or compressed FITS (.fits.gz) file, or a pandas DataFrame.
    variables : list of strings
        The names of the variables (columns) defining the hypervolume.
    groups : str or None
        The name of the grouping column, or None for an empirical hypervolume.

    Returns
    -------
    Data : Data_description instance
    """
    DF_data = load_data_table(data_table)
    DF_data = process_data_table(DF_data, variables, groups)

    # Empirical covariance of the selected variables (ignoring groups), used
    # in the informative prior on the precision matrix
    covariance = DF_data[variables].cov().values
    if not np.all(np.isfinite(covariance)):
        raise ValueError("The empirical covariance matrix of the variables "
                         "is not finite")

    if groups is None:
        Y = DF_data[variables].values.astype("float64")
        return Data_description(variables, Y, covariance)

    Y, group_names, n_per_group = build_group_array(DF_data, variables, groups)
    BH_logger.debug("Observations per group: " + ", ".join(
        "{0}: {1}".format(g, n) for g, n in zip(group_names, n_per_group)))
    return Data_description(variables, Y, covariance, group_column=groups,
                            group_names=group_names, n_per_group=n_per_group)



def load_data_table(data_table):
    """
    Load the table of observations.

    Returns
    -------
    DF_data : pd.DataFrame instance
    """
    BH_logger.info("Loading input data table...")

    if isinstance(data_table, str):
        if data_table.endswith((".fits", ".fits.gz")):
            BinTableHDU_0 = fits.getdata(data_table)  # First HDU with data
            DF_data = Table(BinTableHDU_0).to_pandas()
        elif data_table.endswith(".csv"):
            DF_data = pd.read_csv(data_table, header=0)
        else:
            if "." in data_table:
                raise ValueError("data_table has unknown file extension")
            else:
                raise ValueError("Unknown data_table string '{0}'".format(
                                                                   data_table))
    elif isinstance(data_table, pd.DataFrame):
        # Copy the table, so we don't surprise the user when we modify it!
        DF_data = data_table.copy()
    else:
        raise TypeError("data_table should be a string or DataFrame, not a " +
                        str(type(data_table)))

    return DF_data



def process_raw_table(DF_data, variables, groups):
    """
    Check that the variables and the grouping column are found in the table
    header, in that order.  Column names are stripped of whitespace.
    """
    if len(DF_data) == 0:
        raise ValueError("Input data table contains no rows")

    # Remove any whitespace from column names
    DF_data.rename(inplace=True,
                   columns={c: c.strip() for c in DF_data.columns
                            if isinstance(c, str)})

    for v in variables:
        if v not in DF_data.columns:
            raise ValueError("Variable {0} not found in data".format(v))
    if groups is not None and groups not in DF_data.columns:
        raise ValueError("Grouping variable {0} not found in data".format(groups))



def process_data_table(DF_data, variables, groups):
    """
    Check the observations, and reduce the table to the columns of interest.
    Configuration errors (unknown column names) are raised before checking
    for missing data.

    Returns
    -------
    DF_data : pd.DataFrame instance
        Table with only the variable columns (and the group column, if used),
        with the variable columns converted to double precision.
    """
    process_raw_table(DF_data, variables, groups)

    columns = list(variables)
    if groups is not None:
        columns.append(groups)
    DF_data = DF_data[columns].copy()

    if DF_data.isnull().values.any():
        n_bad = int(DF_data.isnull().any(axis=1).sum())
        raise ValueError("Missing data found in {0} row(s); check all cases "
                         "are complete before fitting the model".format(n_bad))

    for v in variables:
        # Ensure variable columns are a numeric data type
        try:
            DF_data[v] = pd.to_numeric(DF_data[v], errors="raise")
        except (ValueError, TypeError):
            raise TypeError("Variable {0} is not numeric".format(v))
        DF_data[v] = DF_data[v].astype("float64") # Ensure double precision
        if not np.all(np.isfinite(DF_data[v].values)):
            raise ValueError("Variable {0} contains a non-finite value".format(v))

    if len(DF_data) < 2:
        raise ValueError("At least two observations are required")

    return DF_data



def build_group_array(DF_data, variables, groups):
    """
    Rearrange the observations into a rectangular 3D array of individuals by
    groups by variables.  Groups are generally unbalanced, so each group is
    padded with NaN (an unobserved slot, not a zero) up to the size of the
    largest group.  Groups are ordered by sorting their labels, and within a
    group individuals keep the order of the input table.

    Returns
    -------
    Y : numpy ndarray with shape (max_group_size, n_groups, n_dims)
    group_names : list of the sorted group labels
    n_per_group : numpy array of the number of individuals in each group
    """
    group_codes = pd.Categorical(DF_data[groups])
    group_names = list(group_codes.categories)
    codes = np.asarray(group_codes.codes)
    n_groups = len(group_names)
    n_per_group = np.bincount(codes, minlength=n_groups)
    max_n = n_per_group.max()

    values = DF_data[variables].values
    Y = np.full((max_n, n_groups, len(variables)), np.nan)
    for k in range(n_groups):
        group_values = values[codes == k]
        Y[:group_values.shape[0], k, :] = group_values

    assert np.sum(~np.isnan(Y[:, :, 0])) == len(DF_data)
    return Y, group_names, n_per_group
