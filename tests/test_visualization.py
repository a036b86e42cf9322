"""Tests for visualization utilities."""

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from nettrans.bootstrap import BootstrapConfig, bootstrap_transitions
from nettrans.data import prepare_counts
from nettrans.estimation import estimate_transitions
from nettrans.utils.simulation import BMI_CATEGORIES
from nettrans.utils.visualization import (
    plot_prevalence,
    plot_transition_graph,
    plot_transition_heatmap,
    plot_transition_probabilities,
)


@pytest.fixture(scope="module")
def bmi_estimate(bmi_model):
    return estimate_transitions(bmi_model)


@pytest.fixture(scope="module")
def bmi_bootstrap(bmi_model):
    return bootstrap_transitions(bmi_model, config=BootstrapConfig(replicates=20, random_seed=0))


def test_plot_prevalence(bmi_model, bmi_counts, bmi_bootstrap):
    ax = plot_prevalence(bmi_model)
    assert isinstance(ax, plt.Axes)
    assert len(ax.get_lines()) == 3
    plt.close()

    fig, ax = plt.subplots()
    table = prepare_counts(bmi_counts, BMI_CATEGORIES)
    returned = plot_prevalence(bmi_model, ages=np.arange(11), counts=table, bootstrap=bmi_bootstrap, ax=ax)
    assert returned is ax
    assert len(ax.collections) >= 6
    plt.close()


def test_plot_transition_probabilities(bmi_estimate, bmi_bootstrap):
    ax = plot_transition_probabilities(bmi_estimate, "normal")
    assert isinstance(ax, plt.Axes)
    assert len(ax.get_lines()) == 2
    plt.close()

    ax = plot_transition_probabilities(bmi_estimate, "overweight", bootstrap=bmi_bootstrap, to_categories=["obese"])
    assert len(ax.get_lines()) == 1
    assert "overweight" in ax.get_title()
    plt.close()


def test_plot_transition_heatmap(bmi_estimate):
    ax = plot_transition_heatmap(bmi_estimate, age=5)
    assert isinstance(ax, plt.Axes)
    assert "age 5 → 6" in ax.get_title()
    plt.close()

    fig, ax = plt.subplots()
    returned = plot_transition_heatmap(bmi_estimate, age=2.2, ax=ax, annot=False)
    assert returned is ax
    assert "age 2 → 3" in ax.get_title()
    plt.close()


def test_plot_transition_graph(bmi_estimate):
    fig, ax = plot_transition_graph(bmi_estimate, age=3)
    assert isinstance(fig, plt.Figure)
    assert isinstance(ax, plt.Axes)
    plt.close()

    # A threshold above every probability leaves only the nodes
    fig, ax = plot_transition_graph(bmi_estimate, age=3, threshold=1.0)
    assert isinstance(ax, plt.Axes)
    plt.close()
