"""Tests for model persistence functionality."""

import json
import os
import tempfile

import numpy as np
import pytest

from nettrans.models import SmoothModel


def test_save_load_basic(bmi_model):
    """Saved and reloaded models give identical predictions."""
    ages = np.linspace(0, 10, 21)

    with tempfile.TemporaryDirectory() as temp_dir:
        save_path = bmi_model.save(temp_dir)

        config_path = os.path.join(temp_dir, "model_config.json")
        state_dict_path = os.path.join(temp_dir, "model_state_dict.pt")
        assert os.path.exists(config_path)
        assert save_path == state_dict_path

        loaded_model = SmoothModel.load(temp_dir)

    assert loaded_model.categories == bmi_model.categories
    assert loaded_model.reference == bmi_model.reference
    assert loaded_model.degree == bmi_model.degree
    assert loaded_model.n_obs == bmi_model.n_obs
    np.testing.assert_array_equal(loaded_model.knots, bmi_model.knots)
    np.testing.assert_array_equal(loaded_model.covariance, bmi_model.covariance)
    np.testing.assert_array_equal(loaded_model.predict_proba(ages), bmi_model.predict_proba(ages))


def test_save_load_custom_filename(bmi_model):
    with tempfile.TemporaryDirectory() as temp_dir:
        bmi_model.save(temp_dir, filename="bmi")

        assert os.path.exists(os.path.join(temp_dir, "bmi_config.json"))
        assert os.path.exists(os.path.join(temp_dir, "bmi_state_dict.pt"))

        loaded_model = SmoothModel.load(temp_dir, filename="bmi")

    assert loaded_model.basis_size == bmi_model.basis_size


def test_load_missing_files():
    with tempfile.TemporaryDirectory() as temp_dir:
        with pytest.raises(FileNotFoundError):
            SmoothModel.load(temp_dir)


def test_load_wrong_model_type(bmi_model):
    with tempfile.TemporaryDirectory() as temp_dir:
        bmi_model.save(temp_dir)
        config_path = os.path.join(temp_dir, "model_config.json")
        with open(config_path) as f:
            config = json.load(f)
        config["model_type"] = "SomethingElse"
        with open(config_path, "w") as f:
            json.dump(config, f)

        with pytest.raises(ValueError, match="SomethingElse"):
            SmoothModel.load(temp_dir)


def test_model_summary(bmi_model):
    """Test that model summary returns expected information."""
    lines = []
    summary = bmi_model.summary(print_fn=lines.append)

    assert summary["model_type"] == "SmoothModel"
    assert summary["categories"] == ["normal", "overweight", "obese"]
    assert summary["reference_category"] == "normal"
    assert summary["basis_size"] == bmi_model.basis_size
    assert len(summary["smoothing"]) == 2
    assert any("Categories" in line for line in lines)
    assert any("'obese'" in line and "lambda" in line for line in lines)


def test_model_is_immutable(bmi_model):
    with pytest.raises(ValueError):
        bmi_model.coefficients[0, 0] = 1.0
    with pytest.raises(AttributeError):
        bmi_model.degree = 2


def test_resample_returns_new_model(bmi_model):
    original = bmi_model.coefficients.copy()
    draw = bmi_model.resample(np.random.default_rng(0))

    assert draw is not bmi_model
    np.testing.assert_array_equal(bmi_model.coefficients, original)
    assert not np.array_equal(draw.coefficients, original)
    np.testing.assert_array_equal(draw.covariance, bmi_model.covariance)

    again = bmi_model.resample(np.random.default_rng(0))
    np.testing.assert_array_equal(draw.coefficients, again.coefficients)


def test_resample_distribution(linear_model):
    covariance = np.array([[1.0, 0.5], [0.5, 2.0]])
    model = linear_model([[1.0, -1.0]], covariance)
    rng = np.random.default_rng(123)
    draws = np.array([model.resample(rng).coefficient_vector for _ in range(4000)])

    np.testing.assert_allclose(draws.mean(axis=0), [1.0, -1.0], atol=0.1)
    np.testing.assert_allclose(np.cov(draws.T), covariance, atol=0.15)


def test_with_coefficients(linear_model):
    model = linear_model([[0.0, 0.0]])
    shifted = model.with_coefficients([0.0, np.log(3.0)])

    np.testing.assert_allclose(model.predict_proba([0.0, 1.0]), [[0.5, 0.5], [0.5, 0.5]])
    np.testing.assert_allclose(shifted.predict_proba([0.0, 1.0]), [[0.5, 0.5], [0.25, 0.75]])


def test_prevalence_frame(linear_model):
    frame = linear_model([[0.0, np.log(3.0)]]).prevalence_frame([0.0, 1.0])

    assert list(frame.columns) == ["age", "category", "prevalence"]
    assert len(frame) == 4
    assert frame.loc[(frame["age"] == 1.0) & (frame["category"] == "high"), "prevalence"].item() == pytest.approx(0.75)


def test_shape_validation(linear_model):
    model = linear_model([[0.0, 0.0]])
    with pytest.raises(ValueError):
        model.with_coefficients(np.zeros(3))
    with pytest.raises(ValueError, match="covariance"):
        linear_model([[0.0, 0.0]], np.eye(3))
