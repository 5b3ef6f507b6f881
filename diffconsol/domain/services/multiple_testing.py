"""
Multiple-testing helpers shared by the consolidation services.

All functions are pure and operate on array-likes of p-values; they return
numpy arrays aligned to their input.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from statsmodels.stats.multitest import fdrcorrection


def benjamini_hochberg(pvalues: Sequence[float]) -> np.ndarray:
    """
    Benjamini-Hochberg adjusted p-values.

    NaN entries stay NaN and do not count towards the number of tests.

    Args:
        pvalues: Raw p-values

    Returns:
        np.ndarray: Adjusted p-values in the input order, capped at 1
    """
    pvalues = np.asarray(pvalues, dtype=np.float64)
    adjusted = np.full(pvalues.shape, np.nan)
    valid = ~np.isnan(pvalues)
    if valid.any():
        _, corrected = fdrcorrection(pvalues[valid], alpha=0.05, method="indep")
        adjusted[valid] = np.minimum(corrected, 1.0)
    return adjusted


def _as_weights(pvalues: np.ndarray, weights: Optional[Sequence[float]]) -> np.ndarray:
    if weights is None:
        return np.ones_like(pvalues)
    weights = np.asarray(weights, dtype=np.float64)
    if weights.shape != pvalues.shape:
        raise ValueError(
            f"Weights shape {weights.shape} does not match p-values shape {pvalues.shape}"
        )
    if np.any(weights <= 0):
        raise ValueError("Weights must be strictly positive")
    return weights


def weighted_simes(
    pvalues: Sequence[float], weights: Optional[Sequence[float]] = None
) -> Tuple[float, np.ndarray]:
    """
    Combine a group of p-values with the weighted Simes method.

    Args:
        pvalues: P-values of the tests in the group
        weights: Per-test weights (defaults to equal weights)

    Returns:
        Tuple[float, np.ndarray]: Combined p-value and the positions of the
        tests that contribute to it (the most significant tests up to and
        including the one attaining the minimum)
    """
    pvalues = np.asarray(pvalues, dtype=np.float64)
    if pvalues.size == 0:
        raise ValueError("Cannot combine an empty group of p-values")
    weights = _as_weights(pvalues, weights)

    order = np.argsort(pvalues, kind="mergesort")
    cumulative = np.cumsum(weights[order]) / weights.sum()
    adjusted = pvalues[order] / cumulative
    best = int(np.argmin(adjusted))

    return float(min(adjusted[best], 1.0)), order[: best + 1]


def holm_min(
    pvalues: Sequence[float], weights: Optional[Sequence[float]] = None
) -> Tuple[float, int]:
    """
    Smallest weighted Holm-adjusted p-value of a group.

    For the most significant test the Holm step equals a weighted Bonferroni
    correction, p * sum(w) / w.

    Returns:
        Tuple[float, int]: Adjusted p-value and position of the best test
    """
    pvalues = np.asarray(pvalues, dtype=np.float64)
    if pvalues.size == 0:
        raise ValueError("Cannot pick the best test of an empty group")
    weights = _as_weights(pvalues, weights)

    adjusted = pvalues * weights.sum() / weights
    best = int(np.argmin(adjusted))
    return float(min(adjusted[best], 1.0)), best


def empirical_fdr(right: Sequence[float], wrong: Sequence[float]) -> np.ndarray:
    """
    Empirical FDR from the rate of wrong-direction calls.

    For each unit with right-direction p-value t, the FDR is the number of
    wrong-direction p-values <= t divided by the number of right-direction
    p-values <= t, made monotone from the least significant end.

    Args:
        right: One-sided p-values in the direction of interest
        wrong: One-sided p-values in the opposite direction

    Returns:
        np.ndarray: Empirical FDR per unit in the input order
    """
    right = np.asarray(right, dtype=np.float64)
    wrong = np.sort(np.asarray(wrong, dtype=np.float64))
    if right.size == 0:
        return np.empty(0)

    order = np.argsort(right, kind="mergesort")
    sorted_right = right[order]

    numerator = np.searchsorted(wrong, sorted_right, side="right")
    denominator = np.searchsorted(sorted_right, sorted_right, side="right")
    fdr = numerator / denominator
    fdr = np.minimum.accumulate(fdr[::-1])[::-1]
    fdr = np.minimum(fdr, 1.0)

    result = np.empty_like(fdr)
    result[order] = fdr
    return result


def one_sided_pvalues(
    logfc: Sequence[float], pvalues: Sequence[float], direction: str
) -> np.ndarray:
    """
    Convert two-sided p-values into one-sided p-values.

    Args:
        logfc: Log fold changes
        pvalues: Two-sided p-values
        direction: "up" or "down"

    Returns:
        np.ndarray: p/2 where the fold change points in `direction`,
        1 - p/2 otherwise
    """
    logfc = np.asarray(logfc, dtype=np.float64)
    pvalues = np.asarray(pvalues, dtype=np.float64)
    if direction == "up":
        agrees = logfc > 0
    elif direction == "down":
        agrees = logfc < 0
    else:
        raise ValueError(f"Unknown direction '{direction}', expected 'up' or 'down'")
    return np.where(agrees, pvalues / 2, 1 - pvalues / 2)
