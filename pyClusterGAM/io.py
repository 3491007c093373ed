"""Input and output functions for pyClusterGAM."""

import json
import logging
import os.path as op
from pathlib import Path

import joblib
import nibabel as nib
import numpy as np
import pandas as pd
from nilearn.image import concat_imgs, index_img, new_img_like

from pyClusterGAM.utils import get_keyword_description

LGR = logging.getLogger("GENERAL")


def _is_path(obj):
    return isinstance(obj, (str, Path))


def load_image(image, fourd_out=None):
    """Load the imaging data.

    Parameters
    ----------
    image : nibabel.spatialimages.SpatialImage or str or path or list
        Image object, path to an image, or list of paths. If more than one path is given,
        the images are merged across time with :func:`merge_images`.
    fourd_out : str, optional
        Path and file name without the suffix where the merged 4D image is saved.
        Only used when more than one path is given. By default None (not saved).

    Returns
    -------
    image : nibabel.spatialimages.SpatialImage
        Loaded image.
    """
    if _is_path(image):
        LGR.info(f"Loading image {image}")
        return nib.load(image)

    if isinstance(image, (list, tuple)):
        if len(image) == 0:
            raise ValueError("image is missing")
        elif len(image) == 1:
            return load_image(image[0])
        return merge_images(image, fourd_out=fourd_out)

    if not isinstance(image, nib.spatialimages.SpatialImage):
        raise TypeError(
            f"image must be a nibabel image, a path or a list of paths. Got {type(image)} instead."
        )

    return image


def merge_images(images, fourd_out=None):
    """Merge 3D or 4D images along the time dimension.

    Parameters
    ----------
    images : list of str or path or nibabel.spatialimages.SpatialImage
        Images to merge, in the order in which they are concatenated.
    fourd_out : str, optional
        Path and file name without the suffix to save the 4D file. By default None,
        in which case the merged image isn't written out.

    Returns
    -------
    merged_img : nibabel.nifti1.Nifti1Image
        4D image.
    """
    LGR.info(f"Merging {len(images)} images across time")
    merged_img = concat_imgs([str(img) if _is_path(img) else img for img in images])

    if fourd_out is not None:
        out_fn = f"{fourd_out}.nii.gz"
        LGR.info(f"Saving merged 4D image to {out_fn}")
        merged_img.to_filename(out_fn)

    return merged_img


def load_mask(mask):
    """Load the mask with integer-labeled clusters.

    Parameters
    ----------
    mask : nibabel.spatialimages.SpatialImage or str or path
        Mask image or path to the mask. A 4D mask must have a single volume.

    Returns
    -------
    mask_img : nibabel.nifti1.Nifti1Image
        3D mask image.
    """
    if _is_path(mask):
        LGR.info(f"Loading mask {mask}")
        mask = nib.load(mask)
    elif not isinstance(mask, nib.spatialimages.SpatialImage):
        raise TypeError(f"mask must be a nibabel image or a path. Got {type(mask)} instead.")

    # Drop the singleton time dimension of masks saved as 4D files
    if len(mask.shape) == 4:
        if mask.shape[3] != 1:
            raise ValueError(f"Mask must have a single volume. Got {mask.shape[3]} volumes.")
        mask = index_img(mask, 0)

    mask_data = np.asanyarray(mask.dataobj)
    if not np.all(np.equal(np.mod(mask_data, 1), 0)):
        raise ValueError("All clusters must be labeled with integers in the mask.")

    if not np.any(mask_data != 0):
        raise ValueError("Mask does not contain any labeled cluster.")

    return mask


def read_covariates(data_fn):
    """Read the table with the subject-level covariates.

    Parameters
    ----------
    data_fn : str or path
        Path to the table. Rows are volumes and columns are covariates.

    Returns
    -------
    subj_data : pandas.DataFrame
        Covariates.
    """
    # Check extention 0 in case of compressed files (handled by pandas) to set delimiter
    suffix = Path(data_fn).suffixes[0] if Path(data_fn).suffixes else ""
    if suffix == ".csv":
        delimiter = ","
    elif suffix in [".tsv", ".txt"]:
        delimiter = "\t"
    else:
        delimiter = r"\s+"

    subj_data = pd.read_csv(data_fn, sep=delimiter)
    LGR.info(
        f"Loaded {subj_data.shape[1]} covariates for {subj_data.shape[0]} volumes from {data_fn}"
    )

    return subj_data


def write_table(table, filename):
    """Write a table into a TSV file.

    Parameters
    ----------
    table : pandas.DataFrame
        Table to write.
    filename : str or path
        Name of the output file.
    """
    table.to_csv(filename, sep="\t", index=False, na_rep="n/a")


def write_models(models, filename):
    """Save the fitted models."""
    joblib.dump(models, filename)


def read_models(filename):
    """Load models saved with :func:`write_models`."""
    return joblib.load(filename)


def write_cluster_map(values, filename, masker):
    """Write one value per cluster into a NIFTI file.

    Parameters
    ----------
    values : array-like of shape (n_clusters,)
        Value of every cluster, in the order of the masker labels.
    filename : str or path
        Name of the output file.
    masker : nilearn.maskers.NiftiLabelsMasker
        Fitted masker used to compute the cluster means.
    """
    values = np.asarray(values, dtype=float).reshape(1, -1)
    out_img = masker.inverse_transform(values)

    # inverse_transform keeps a singleton time dimension on some nilearn versions
    out_data = np.asanyarray(out_img.dataobj)
    if out_data.ndim == 4:
        out_data = out_data[..., 0]

    new_img = new_img_like(out_img, out_data, affine=out_img.affine)
    new_img.to_filename(filename)


def write_json(keywords, out_dir):
    """Write dataset description into JSON file.

    Parameters
    ----------
    keywords : list
        List of keywords to be added to the JSON file.
    out_dir : str or path
        Path to the output directory.
    """
    # Create dictionary with all the information
    out_dict = {}

    for keyword in keywords:
        out_dict[keyword] = {}
        out_dict[keyword]["description"] = get_keyword_description(keyword)
        out_dict[keyword]["method"] = "pyClusterGAM"

        if "meanCluster" in keyword:
            out_dict[keyword]["units"] = "arbitrary"
        elif "edof" in keyword:
            out_dict[keyword]["units"] = "degrees of freedom"

    # Create output filename
    outname = "dataset_description.json"

    # Write json file
    with open(op.join(out_dir, outname), "w") as f:
        f.write(json.dumps(out_dict, indent=4))
