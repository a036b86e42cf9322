"""nettrans: net transition probabilities from cross-sectional prevalence data."""

# Import data handling
from .data import CategoryCount, CountTable, prepare_counts

# Import errors
from .exceptions import (
    NetTransError,
    FitFailure,
    InvalidConfig,
    InfeasibleProblem,
    InsufficientReplicates,
)

# Import prevalence smoothing
from .models import SmoothModel
from .train import fit, SmoothConfig

# Import transition estimation
from .costs import CostConfig, CostMatrix, build_cost_matrix
from .transport import solve_transport, transport_cost
from .estimation import TransitionEstimate, estimate_transitions
from .bootstrap import BootstrapConfig, BootstrapResult, bootstrap_transitions
from .pipeline import NetTransitionResult, estimate_net_transitions

# Import utility functions from utils package
from .utils import (
    AgeGrid,
    bmi_prevalence,
    generate_cross_sectional_counts,
    true_net_transitions,
    plot_prevalence,
    plot_transition_probabilities,
    plot_transition_heatmap,
    plot_transition_graph,
)

__version__ = "0.1.0"

# Define exports
__all__ = [
    # Data
    "CategoryCount",
    "CountTable",
    "prepare_counts",

    # Errors
    "NetTransError",
    "FitFailure",
    "InvalidConfig",
    "InfeasibleProblem",
    "InsufficientReplicates",

    # Smoothing
    "SmoothModel",
    "SmoothConfig",
    "fit",

    # Transitions
    "CostConfig",
    "CostMatrix",
    "build_cost_matrix",
    "solve_transport",
    "transport_cost",
    "TransitionEstimate",
    "estimate_transitions",
    "BootstrapConfig",
    "BootstrapResult",
    "bootstrap_transitions",
    "NetTransitionResult",
    "estimate_net_transitions",

    # Utilities
    "AgeGrid",
    "bmi_prevalence",
    "generate_cross_sectional_counts",
    "true_net_transitions",
    "plot_prevalence",
    "plot_transition_probabilities",
    "plot_transition_heatmap",
    "plot_transition_graph",
]
