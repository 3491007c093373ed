# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
"""pyClusterGAM: Generalized Additive Models on the mean intensity of labeled clusters.

pyClusterGAM averages a 3D/4D neuroimaging volume over every cluster of an
integer-labeled mask and fits one generalized additive model per cluster, with
the cluster mean as the response and subject-level covariates as predictors.

Main Functions
--------------
gam_cluster
    Fit one model per cluster, in parallel.
mean_cluster
    Mean intensity of every cluster in every volume.
list_formula
    Formula of one cluster from a formula template.
fit_gam
    Fit one model from a formula.

Examples
--------
>>> from pyClusterGAM import gam_cluster
>>> models = gam_cluster("data.nii.gz", "clusters.nii.gz", "~ s(age) + sex",
...                      "covariates.csv", n_jobs=4)  # doctest: +SKIP
"""
from pyClusterGAM.__about__ import __copyright__, __credits__, __packagename__, __version__
from pyClusterGAM.cluster import mean_cluster
from pyClusterGAM.formula import list_formula, parse_formula
from pyClusterGAM.gamcluster import gam_cluster
from pyClusterGAM.io import load_image, load_mask, merge_images
from pyClusterGAM.model import fit_gam, summarize_model

__all__ = [
    # Version info
    "__copyright__",
    "__credits__",
    "__packagename__",
    "__version__",
    # Main functions
    "gam_cluster",
    "mean_cluster",
    "list_formula",
    "parse_formula",
    "fit_gam",
    "summarize_model",
    # I/O
    "load_image",
    "load_mask",
    "merge_images",
]
