"""Penalized multinomial likelihood for prevalence smoothing."""

from typing import Sequence

import torch
import torch.nn as nn

__all__ = [
    "multinomial_log_proba",
    "MultinomialLoss",
    "PenalizedMultinomialLoss",
]


def multinomial_log_proba(eta: torch.Tensor, reference: int) -> torch.Tensor:
    """Log-probabilities under the multinomial logit link.

    Parameters
    ----------
    eta : torch.Tensor
        Linear predictors of the non-reference categories, shape (n, K-1)
    reference : int
        Position of the reference category among the K categories

    Returns
    -------
    torch.Tensor
        Log-probabilities of shape (n, K); each row exponentiates to a
        probability vector summing to one
    """
    zeros = torch.zeros(eta.shape[0], 1, dtype=eta.dtype, device=eta.device)
    full = torch.cat([eta[:, :reference], zeros, eta[:, reference:]], dim=1)
    return torch.log_softmax(full, dim=1)


class MultinomialLoss(nn.Module):
    """Negative multinomial log-likelihood of grouped counts.

    The multinomial coefficient is omitted; ages without observations
    contribute nothing.
    """

    def __init__(self, basis: torch.Tensor, counts: torch.Tensor, reference: int):
        super().__init__()
        self.register_buffer("basis", basis)
        self.register_buffer("counts", counts)
        self.reference = reference

    def forward(self, coefficients: torch.Tensor) -> torch.Tensor:
        """Evaluate the loss for coefficients of shape (K-1, basis_size)."""
        eta = self.basis @ coefficients.T
        log_proba = multinomial_log_proba(eta, self.reference)
        return -(self.counts * log_proba).sum()


class PenalizedMultinomialLoss(MultinomialLoss):
    """Multinomial loss plus one difference penalty per category smooth.

    The objective is ``-loglik + 0.5 * sum_j lambda_j * beta_j' S beta_j``.
    """

    def __init__(
        self,
        basis: torch.Tensor,
        counts: torch.Tensor,
        reference: int,
        penalty: torch.Tensor,
        smoothing: Sequence[float],
    ):
        super().__init__(basis, counts, reference)
        self.register_buffer("penalty", penalty)
        self.register_buffer("smoothing", torch.as_tensor(smoothing, dtype=basis.dtype))

    def roughness(self, coefficients: torch.Tensor) -> torch.Tensor:
        """Per-category quadratic roughness beta_j' S beta_j, shape (K-1,)."""
        return ((coefficients @ self.penalty) * coefficients).sum(dim=1)

    def forward(self, coefficients: torch.Tensor) -> torch.Tensor:
        nll = super().forward(coefficients)
        return nll + 0.5 * (self.smoothing * self.roughness(coefficients)).sum()
