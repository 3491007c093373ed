import os.path as op

import nibabel as nib
import numpy as np
import pandas as pd
import pytest

N_VOLUMES = 25


def pytest_addoption(parser):
    parser.addoption(
        "--skipintegration", action="store_true", default=False, help="Skip integration tests."
    )


@pytest.fixture
def skip_integration(request):
    return request.config.getoption("--skipintegration")


@pytest.fixture(scope="session")
def testpath(tmp_path_factory):
    """Test path that will be used to write all files"""
    return tmp_path_factory.getbasetemp()


@pytest.fixture
def data_img():
    """4D image with 25 volumes filled with 1..1600 in Fortran order."""
    data = np.arange(1, 1601, dtype=np.float64).reshape((4, 4, 4, N_VOLUMES), order="F")
    return nib.Nifti1Image(data, np.eye(4))


@pytest.fixture
def mask_img():
    """Mask with 4 clusters labeled 1 to 4 along the first axis."""
    labels = np.tile(np.arange(1, 5, dtype=np.int16)[:, None, None], (1, 4, 4))
    return nib.Nifti1Image(labels, np.eye(4))


@pytest.fixture
def covariates():
    """Covariates with a smooth effect and a factor."""
    rng = np.random.default_rng(1)
    return pd.DataFrame(
        {
            "x": rng.uniform(size=N_VOLUMES),
            "age": rng.uniform(8, 22, size=N_VOLUMES),
            "sex": np.tile(["F", "M"], N_VOLUMES)[:N_VOLUMES],
        }
    )


@pytest.fixture
def signal_data():
    """Cluster-like table whose response depends on a smooth function of x."""
    rng = np.random.default_rng(42)
    n_samples = 100
    x = np.sort(rng.uniform(0, 1, size=n_samples))
    group = np.tile([0, 1], n_samples // 2)
    response = np.sin(2 * np.pi * x) + 0.5 * group + rng.normal(scale=0.1, size=n_samples)
    return pd.DataFrame({"cluster1": response, "x": x, "group": group})


@pytest.fixture
def data_fn(data_img, testpath):
    out_fn = op.join(testpath, "data.nii.gz")
    data_img.to_filename(out_fn)
    return out_fn


@pytest.fixture
def mask_fn(mask_img, testpath):
    out_fn = op.join(testpath, "mask.nii.gz")
    mask_img.to_filename(out_fn)
    return out_fn


@pytest.fixture
def covariates_fn(covariates, testpath):
    out_fn = op.join(testpath, "covariates.csv")
    covariates.to_csv(out_fn, index=False)
    return out_fn
