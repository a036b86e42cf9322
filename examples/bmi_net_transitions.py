#!/usr/bin/env python
"""
Net BMI Transitions Example for nettrans

This example demonstrates:
1. Generating cross-sectional BMI category counts with a known prevalence shift
2. Smoothing the age-specific prevalence with a multinomial P-spline model
3. Estimating net transition probabilities between consecutive ages
4. Bootstrapping percentile bands and comparing them with the ground truth

The categories are ordered:
- normal
- overweight
- obese

Transitions cost the squared categorical distance, so moving from normal
to obese in one year is four times as expensive as a one-step move.
"""

import logging

import matplotlib.pyplot as plt
import numpy as np

from nettrans import (
    BootstrapConfig,
    CostConfig,
    SmoothConfig,
    estimate_net_transitions,
)
from nettrans.utils import (
    BMI_CATEGORIES,
    bmi_prevalence,
    generate_cross_sectional_counts,
    plot_prevalence,
    plot_transition_heatmap,
    plot_transition_probabilities,
    true_net_transitions,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

AGES = np.arange(0, 11)
N_PER_AGE = 2000
REPLICATES = 500
SEED = 42


def main():
    true_prevalence = bmi_prevalence(AGES)
    counts = generate_cross_sectional_counts(
        AGES, true_prevalence, n_per_age=N_PER_AGE, categories=BMI_CATEGORIES, random_seed=SEED
    )

    result = estimate_net_transitions(
        counts,
        categories=BMI_CATEGORIES,
        smooth_config=SmoothConfig(show_progress=True),
        cost_config=CostConfig("quadratic"),
        bootstrap_config=BootstrapConfig(replicates=REPLICATES, random_seed=SEED, n_jobs=-1, show_progress=True),
    )
    result.model.summary()

    truth = true_net_transitions(AGES, true_prevalence, result.cost)
    estimated = result.estimate.probability("normal", "overweight")
    lower, upper = result.bootstrap.lower[:, 0, 1], result.bootstrap.upper[:, 0, 1]
    print("\nNet transition normal -> overweight")
    print(f"{'age':>8} {'truth':>8} {'estimate':>9} {'95% band':>18}")
    for (a, b), t, e, lo, hi in zip(result.estimate.age_pairs, truth.probabilities[:, 0, 1], estimated, lower, upper):
        print(f"{a:>3g} -> {b:<2g} {t:8.4f} {e:9.4f}   [{lo:.4f}, {hi:.4f}]")

    table = result.to_frame()
    print(f"\n{len(table)} rows in the result table; first rows:")
    print(table.head(9).to_string(index=False))

    fig, axes = plt.subplots(1, 3, figsize=(18, 5))
    plot_prevalence(result.model, counts=None, bootstrap=result.bootstrap, ax=axes[0])
    plot_transition_probabilities(result.estimate, "normal", bootstrap=result.bootstrap, ax=axes[1])
    axes[1].plot(AGES[:-1], truth.probabilities[:, 0, 1], "k--", label="truth (normal → overweight)")
    axes[1].legend()
    plot_transition_heatmap(result.estimate, age=5, ax=axes[2])
    plt.tight_layout()
    plt.savefig("bmi_net_transitions.png")
    print("\nSaved figure to bmi_net_transitions.png")


if __name__ == "__main__":
    main()
