"""Utility functions for nettrans."""

from .age_grid import AgeGrid

from .simulation import (
    BMI_CATEGORIES,
    logistic_prevalence,
    bmi_prevalence,
    generate_cross_sectional_counts,
    true_net_transitions,
)

from .visualization import (
    plot_prevalence,
    plot_transition_probabilities,
    plot_transition_heatmap,
    plot_transition_graph,
)

__all__ = [
    # Age grids
    "AgeGrid",

    # Simulation utilities
    "BMI_CATEGORIES",
    "logistic_prevalence",
    "bmi_prevalence",
    "generate_cross_sectional_counts",
    "true_net_transitions",

    # Visualization utilities
    "plot_prevalence",
    "plot_transition_probabilities",
    "plot_transition_heatmap",
    "plot_transition_graph",
]
