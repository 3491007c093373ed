"""Generalized additive models on the mean intensity of labeled clusters."""

import logging
import os
import time

import numpy as np
import pandas as pd
from dask import compute
from dask import delayed as delayed_dask

from pyClusterGAM.cluster import mean_cluster
from pyClusterGAM.formula import list_formula
from pyClusterGAM.io import load_image, load_mask, read_covariates
from pyClusterGAM.model import fit_gam, fit_gam_batch
from pyClusterGAM.utils import dask_scheduler

LGR = logging.getLogger("GENERAL")


def _check_covariates(subj_data, n_volumes, cluster_columns):
    """Validate the covariate table and return it as a DataFrame."""
    if isinstance(subj_data, (str, os.PathLike)):
        subj_data = read_covariates(subj_data)
    elif not isinstance(subj_data, pd.DataFrame):
        subj_data = pd.DataFrame(subj_data)

    if subj_data.shape[0] != n_volumes:
        raise ValueError(
            f"subj_data has {subj_data.shape[0]} rows but the image has {n_volumes} volumes."
        )

    overlap = sorted(set(subj_data.columns) & set(cluster_columns))
    if overlap:
        raise ValueError(f"Covariate names {overlap} collide with cluster column names.")

    return subj_data.reset_index(drop=True)


def schedule_batches(formulas, n_jobs, preschedule=True):
    """Split the formulas into the batches that are sent to the workers.

    Parameters
    ----------
    formulas : list of str
        Model formulas.
    n_jobs : int
        Number of workers.
    preschedule : bool, optional
        If True (default), split the formulas into ``n_jobs`` contiguous batches. If False,
        every formula is a batch of its own.

    Returns
    -------
    batches : list of list of str
        Batches. Concatenating them gives back ``formulas``.
    """
    if not preschedule:
        return [[formula] for formula in formulas]

    n_batches = min(n_jobs, len(formulas))
    return [
        [formulas[idx] for idx in batch_idxs]
        for batch_idxs in np.array_split(np.arange(len(formulas)), n_batches)
    ]


def gam_cluster(
    image,
    mask,
    formula,
    subj_data,
    fourd_out=None,
    preschedule=True,
    n_jobs=1,
    jobqueue=None,
    return_data=False,
    **gam_kwargs,
):
    """Fit a generalized additive model on the mean intensity of every cluster.

    All clusters must be labeled with integers in ``mask``. One model is fitted per cluster
    with the mean intensity of the cluster as the response.

    Parameters
    ----------
    image : nibabel.spatialimages.SpatialImage or str or list of str
        Input image or path(s) to images. If multiple paths are given, the images are merged
        across time.
    mask : nibabel.spatialimages.SpatialImage or str
        Input mask or path to the mask.
    formula : str
        Formula template with the right-hand side of the model, e.g. ``"~ s(age) + sex"``.
        The name of every cluster column (``cluster<label>``) is used as the response.
    subj_data : pandas.DataFrame or str
        Covariates used in the formula, one row per volume, or path to a table with them.
    fourd_out : str, optional
        Path and file name without the suffix to save the merged 4D image, by default None
        (not saved).
    preschedule : bool, optional
        Whether to split the clusters into ``n_jobs`` batches before sending them to the
        workers (True, default) or to send one job per cluster (False).
    n_jobs : int, optional
        Number of worker processes, by default 1.
    jobqueue : str, optional
        Path to a dask_jobqueue YAML file to run the models on an HPC cluster, by default None.
    return_data : bool, optional
        Whether to also return the cluster means and the masker, by default False.
    **gam_kwargs
        Additional arguments passed to :func:`pyClusterGAM.model.fit_gam` (e.g.
        ``distribution``, ``link`` or ``method``).

    Returns
    -------
    models : list of pygam.GAM
        Models fitted to the mean intensity of every cluster, sorted by cluster label.
    cluster_means : pandas.DataFrame
        Mean intensity of every cluster. Only returned if ``return_data`` is True.
    masker : nilearn.maskers.NiftiLabelsMasker
        Masker used to average the clusters. Only returned if ``return_data`` is True.

    Examples
    --------
    >>> import nibabel as nib
    >>> import numpy as np
    >>> import pandas as pd
    >>> data = np.arange(1, 1601, dtype=float).reshape((4, 4, 4, 25), order="F")
    >>> labels = np.repeat(np.arange(1, 5), 16).reshape((4, 4, 4), order="F")
    >>> image = nib.Nifti1Image(data, np.eye(4))
    >>> mask = nib.Nifti1Image(labels.astype(np.int16), np.eye(4))
    >>> covs = pd.DataFrame({"x": np.random.default_rng(1).uniform(size=25)})
    >>> models = gam_cluster(image, mask, "~ s(x)", covs, n_jobs=1)
    >>> len(models)
    4
    """
    if image is None:
        raise ValueError("image is missing")
    if mask is None:
        raise ValueError("mask is missing")
    if formula is None:
        raise ValueError("formula is missing")
    if subj_data is None:
        raise ValueError("subj_data is missing")

    if not isinstance(formula, str):
        raise TypeError(f"formula must be a string. Got {type(formula)} instead.")
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be a positive integer. Got {n_jobs} instead.")

    image = load_image(image, fourd_out=fourd_out)
    mask = load_mask(mask)

    cluster_means, masker = mean_cluster(image, mask)
    cluster_columns = list(cluster_means.columns)
    del image, mask

    LGR.info("Created mean cluster matrix")

    formulas = [list_formula(name, formula) for name in cluster_columns]
    subj_data = _check_covariates(subj_data, cluster_means.shape[0], cluster_columns)
    data = pd.concat([cluster_means, subj_data], axis=1)

    LGR.info("Created formula list")

    time_in = time.time()

    LGR.info("Running test model")
    fit_gam(formulas[0], data, **gam_kwargs)

    LGR.info("Running parallel models")
    batches = schedule_batches(formulas, n_jobs, preschedule)
    LGR.debug(f"Sending {len(formulas)} models in {len(batches)} jobs")

    client, cluster = dask_scheduler(n_jobs, jobqueue)
    try:
        # Scatter data to workers if client is not None
        data_fut = data if client is None else client.scatter(data, broadcast=True)

        futures = [
            delayed_dask(fit_gam_batch, pure=False)(batch, data_fut, **gam_kwargs)
            for batch in batches
        ]

        if client is not None:
            results = compute(futures)[0]
        elif n_jobs == 1:
            results = compute(futures, scheduler="single-threaded")[0]
        else:
            results = compute(futures, scheduler="processes", num_workers=n_jobs)[0]
    finally:
        # Close the client and cluster
        if client is not None:
            client.close()
            cluster.close()

    models = [model for batch_models in results for model in batch_models]

    LGR.info(f"Elapsed time: {time.time() - time_in:.2f} s")
    LGR.info("Parallel models ran")

    if return_data:
        return models, cluster_means, masker

    return models
