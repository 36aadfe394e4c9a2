from typing import Iterable

import numpy as np
import pandas as pd


def zscore(values: Iterable[float]) -> np.ndarray:
    """Standardize with the sample mean and sample standard deviation (ddof=1).

    Fewer than two values, zero variance or non-finite inputs give NaN
    rather than raising.
    """
    x = np.asarray(values, dtype=np.float64)
    if x.size < 2:
        return np.full(x.shape, np.nan)
    with np.errstate(divide="ignore", invalid="ignore"):
        return (x - np.mean(x)) / np.std(x, ddof=1)


def descending_rank(values: Iterable[float]) -> np.ndarray:
    """Rank 1 for the largest value; ties keep their input order, NaN ranks last."""
    ranks = pd.Series(np.asarray(values, dtype=np.float64)).rank(
        method="first", ascending=False, na_option="bottom"
    )
    return ranks.to_numpy(dtype=np.int64)


__all__ = [
    "zscore",
    "descending_rank",
]
