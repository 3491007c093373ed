import json
import os.path as op

import nibabel as nib
import numpy as np
import pandas as pd
import pytest
from nilearn.maskers import NiftiLabelsMasker

from pyClusterGAM import io


class TestLoadImage:
    """Tests for load_image function."""

    def test_load_image_object(self, data_img):
        """Test that images are returned unchanged."""
        assert io.load_image(data_img) is data_img

    def test_load_image_path(self, data_fn):
        """Test loading a single path."""
        img = io.load_image(data_fn)
        assert img.shape == (4, 4, 4, 25)

    def test_load_image_single_element_list(self, data_fn):
        """Test that a list with one path is loaded without merging."""
        img = io.load_image([data_fn])
        assert img.shape == (4, 4, 4, 25)

    def test_load_image_merges_paths(self, data_img, testpath):
        """Test that several paths are merged across time."""
        fns = []
        for idx in range(3):
            fn = op.join(testpath, f"vol{idx}.nii.gz")
            nib.Nifti1Image(data_img.get_fdata()[..., idx], np.eye(4)).to_filename(fn)
            fns.append(fn)

        img = io.load_image(fns)
        assert img.shape == (4, 4, 4, 3)
        np.testing.assert_allclose(img.get_fdata(), data_img.get_fdata()[..., :3])

    def test_load_image_empty_list(self):
        """Test that an empty list is rejected."""
        with pytest.raises(ValueError, match="image is missing"):
            io.load_image([])

    def test_load_image_wrong_type(self):
        """Test that other objects are rejected."""
        with pytest.raises(TypeError):
            io.load_image(np.zeros((4, 4, 4)))


class TestMergeImages:
    """Tests for merge_images function."""

    def test_merge_4d_images(self, data_img):
        """Test merging two 4D images."""
        merged = io.merge_images([data_img, data_img])
        assert merged.shape == (4, 4, 4, 50)

    def test_merge_writes_fourd_out(self, data_img, testpath):
        """Test that the merged image is saved with the .nii.gz suffix."""
        fourd_out = op.join(testpath, "merged")
        io.merge_images([data_img, data_img], fourd_out=fourd_out)

        assert op.exists(f"{fourd_out}.nii.gz")
        assert nib.load(f"{fourd_out}.nii.gz").shape == (4, 4, 4, 50)


class TestLoadMask:
    """Tests for load_mask function."""

    def test_load_mask_path(self, mask_fn):
        """Test loading a mask from a path."""
        mask = io.load_mask(mask_fn)
        assert mask.shape == (4, 4, 4)

    def test_load_mask_single_volume_4d(self, mask_img):
        """Test that 4D masks with one volume become 3D."""
        mask_4d = nib.Nifti1Image(np.asanyarray(mask_img.dataobj)[..., None], np.eye(4))
        mask = io.load_mask(mask_4d)
        assert mask.shape == (4, 4, 4)

    def test_load_mask_multiple_volumes(self):
        """Test that 4D masks with several volumes are rejected."""
        mask = nib.Nifti1Image(np.ones((4, 4, 4, 2), dtype=np.int16), np.eye(4))
        with pytest.raises(ValueError, match="single volume"):
            io.load_mask(mask)

    def test_load_mask_non_integer(self):
        """Test that non-integer labels are rejected."""
        mask = nib.Nifti1Image(np.full((4, 4, 4), 1.5), np.eye(4))
        with pytest.raises(ValueError, match="integers"):
            io.load_mask(mask)

    def test_load_mask_empty(self):
        """Test that masks without clusters are rejected."""
        mask = nib.Nifti1Image(np.zeros((4, 4, 4), dtype=np.int16), np.eye(4))
        with pytest.raises(ValueError, match="labeled cluster"):
            io.load_mask(mask)


class TestReadCovariates:
    """Tests for read_covariates function."""

    @pytest.mark.parametrize(
        "suffix, sep", [(".csv", ","), (".tsv", "\t"), (".txt", "\t"), (".dat", " ")]
    )
    def test_read_covariates(self, covariates, testpath, suffix, sep):
        """Test that the delimiter is picked from the suffix."""
        fn = op.join(testpath, f"covs{suffix}")
        covariates.to_csv(fn, sep=sep, index=False)

        subj_data = io.read_covariates(fn)

        assert list(subj_data.columns) == ["x", "age", "sex"]
        assert subj_data.shape == (25, 3)
        np.testing.assert_allclose(subj_data["x"], covariates["x"])


class TestWriteOutputs:
    """Tests for the functions writing the outputs."""

    def test_write_table(self, testpath):
        """Test writing a TSV table."""
        fn = op.join(testpath, "table.tsv")
        io.write_table(pd.DataFrame({"a": [1.0, np.nan], "b": ["x", "y"]}), fn)

        content = pd.read_csv(fn, sep="\t")
        assert list(content.columns) == ["a", "b"]
        assert content["a"].isna().iloc[1]

    def test_write_read_models(self, testpath):
        """Test that saved models can be read back."""
        fn = op.join(testpath, "models.pkl")
        io.write_models([{"model": 1}, {"model": 2}], fn)

        assert io.read_models(fn) == [{"model": 1}, {"model": 2}]

    def test_write_cluster_map(self, data_img, mask_img, testpath):
        """Test projecting one value per cluster back into voxel space."""
        masker = NiftiLabelsMasker(labels_img=mask_img, strategy="mean")
        masker.fit_transform(data_img)

        fn = op.join(testpath, "cluster_map.nii.gz")
        io.write_cluster_map([10.0, 20.0, 30.0, 40.0], fn, masker)

        out_data = nib.load(fn).get_fdata()
        assert out_data.shape == (4, 4, 4)
        for label in range(1, 5):
            assert np.all(out_data[label - 1] == label * 10)

    def test_write_json(self, testpath):
        """Test write_json function."""
        keywords = ["meanCluster", "summary", "models", "edof"]

        io.write_json(keywords, testpath)

        json_path = op.join(testpath, "dataset_description.json")
        assert op.exists(json_path)

        with open(json_path) as f:
            content = json.load(f)

        assert set(content) == set(keywords)
        assert content["meanCluster"]["units"] == "arbitrary"
        assert content["summary"]["method"] == "pyClusterGAM"
        assert "units" not in content["models"]
