"""Mean intensity of labeled clusters."""

import logging

import numpy as np
import pandas as pd
from nilearn.maskers import NiftiLabelsMasker

LGR = logging.getLogger("GENERAL")


def cluster_names(labels):
    """Get the column name of every cluster label.

    Parameters
    ----------
    labels : array-like of int
        Cluster labels.

    Returns
    -------
    names : list of str
        Names with the form ``cluster<label>``.
    """
    return [f"cluster{int(label)}" for label in labels]


def get_labels(mask_img):
    """Get the sorted non-zero labels of a mask image."""
    mask_data = np.asanyarray(mask_img.dataobj)
    labels = np.unique(mask_data)
    return labels[labels != 0].astype(int)


def mean_cluster(image, mask):
    """Compute the mean intensity of every cluster in every volume.

    Parameters
    ----------
    image : nibabel.spatialimages.SpatialImage
        3D or 4D image. Volumes (time points or subjects) are in the last dimension.
    mask : nibabel.spatialimages.SpatialImage
        3D mask with clusters labeled with integers. Zero is background.

    Returns
    -------
    cluster_means : pandas.DataFrame
        Table of shape (n_volumes, n_clusters). Columns are named ``cluster<label>`` and
        sorted by label. A 3D image gives a single row.
    masker : nilearn.maskers.NiftiLabelsMasker
        Fitted masker, which can project cluster values back into voxel space.
    """
    if image.shape[:3] != mask.shape[:3]:
        raise ValueError(
            f"Image and mask must have the same spatial dimensions. "
            f"Got {image.shape[:3]} and {mask.shape[:3]}."
        )

    labels = get_labels(mask)
    LGR.info(f"Averaging data over {len(labels)} clusters.")

    masker = NiftiLabelsMasker(labels_img=mask, strategy="mean")
    signals = np.atleast_2d(masker.fit_transform(image))

    if signals.shape[1] != len(labels):
        raise ValueError(
            f"Expected {len(labels)} cluster means but got {signals.shape[1]}. "
            "Check that image and mask share the same affine."
        )

    cluster_means = pd.DataFrame(signals, columns=cluster_names(labels))
    LGR.debug(f"Cluster means have shape {cluster_means.shape}")

    return cluster_means, masker
