"""
Deviance-based feature selection on raw counts.

Binomial and Poisson deviance of each gene against a null model in which
every observation expresses the gene at the same proportion of its total
counts (Townes et al., 2019). Genes whose counts are poorly described by
that null have high deviance. With a batch vector, the null proportion is
fitted separately within each batch level and the deviances are summed, so
variation explained by the batch alone no longer contributes.
"""

from typing import Any, Iterable, Literal, Optional

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc
from joblib import Parallel, delayed
from scanpy import logging as logg
from scipy import sparse
from tqdm import tqdm

from .._exceptions import ComputationError, ConfigurationError, ShapeError
from .._utilities import tqdm_joblib
from .._validate import validate_batch_key
from ..get import batch_factor, counts

FAMILIES = ("binomial", "poisson")


def _size_factors(X) -> np.ndarray:
    return np.asarray(X.sum(axis=1), dtype=np.float64).ravel()


def _check_counts(X) -> None:
    data = X.data if sparse.issparse(X) else np.asarray(X)
    if not np.all(np.isfinite(data)):
        raise ComputationError("Count matrix contains NaN or infinite values.")
    if np.any(data < 0):
        raise ComputationError("Count matrix contains negative values.")


def _dense_binomial(X: np.ndarray, sz: np.ndarray) -> np.ndarray:
    total = sz.sum()
    if total == 0:
        return np.zeros(X.shape[1])
    p = X.sum(axis=0) / total
    n = sz[:, None]
    nx = n - X
    with np.errstate(divide="ignore", invalid="ignore"):
        term1 = np.where(X > 0, X * np.log(X / (n * p)), 0.0)
        term2 = np.where(nx > 0, nx * np.log(nx / (n * (1 - p))), 0.0)
    return 2 * (term1.sum(axis=0) + term2.sum(axis=0))


def _sparse_binomial(X: sparse.csr_matrix, sz: np.ndarray) -> np.ndarray:
    n_genes = X.shape[1]
    total = sz.sum()
    if total == 0:
        return np.zeros(n_genes)
    coo = X.tocoo()
    nz = coo.data != 0
    x = coo.data[nz].astype(np.float64)
    rows = coo.row[nz]
    cols = coo.col[nz]

    p = np.bincount(cols, weights=x, minlength=n_genes) / total
    n = sz[rows]
    pj = p[cols]
    nx = n - x
    # observations with a zero count contribute n * log(1 / (1 - p))
    n_zero = total - np.bincount(cols, weights=n, minlength=n_genes)
    with np.errstate(divide="ignore", invalid="ignore"):
        term1 = x * np.log(x / (n * pj))
        term2 = np.where(nx > 0, nx * np.log(nx / (n * (1 - pj))), 0.0)
        term0 = np.where((n_zero > 0) & (p < 1), -n_zero * np.log1p(-p), 0.0)
    return 2 * (np.bincount(cols, weights=term1 + term2, minlength=n_genes) + term0)


def _poisson_scale(sz: np.ndarray) -> np.ndarray:
    if np.any(sz <= 0):
        raise ComputationError(
            f"{int(np.sum(sz <= 0))} observations have zero total counts, "
            "poisson deviance requires positive size factors."
        )
    lsz = np.log(sz)
    return np.exp(lsz - lsz.mean())


def _dense_poisson(X: np.ndarray, sz: np.ndarray) -> np.ndarray:
    s = _poisson_scale(sz)
    gene_totals = X.sum(axis=0)
    lam = gene_totals / s.sum()
    mu = s[:, None] * lam
    with np.errstate(divide="ignore", invalid="ignore"):
        term1 = np.where(X > 0, X * np.log(X / mu), 0.0)
    return 2 * term1.sum(axis=0) - 2 * (gene_totals - lam * s.sum())


def _sparse_poisson(X: sparse.csr_matrix, sz: np.ndarray) -> np.ndarray:
    n_genes = X.shape[1]
    s = _poisson_scale(sz)
    coo = X.tocoo()
    nz = coo.data != 0
    x = coo.data[nz].astype(np.float64)
    rows = coo.row[nz]
    cols = coo.col[nz]

    gene_totals = np.bincount(cols, weights=x, minlength=n_genes)
    lam = gene_totals / s.sum()
    term1 = x * np.log(x / (s[rows] * lam[cols]))
    return 2 * np.bincount(cols, weights=term1, minlength=n_genes) - 2 * (
        gene_totals - lam * s.sum()
    )


def _deviance(X, family: str) -> np.ndarray:
    assert family in FAMILIES, f"unknown deviance family {family!r}"
    if X.shape[1] == 0 or X.shape[0] == 0:
        return np.zeros(X.shape[1])
    sz = _size_factors(X)
    if sparse.issparse(X):
        fn = _sparse_binomial if family == "binomial" else _sparse_poisson
        return fn(X, sz)
    fn = _dense_binomial if family == "binomial" else _dense_poisson
    return fn(np.asarray(X, dtype=np.float64), sz)


def _batched_deviance(X, family: str, current_batch: Any) -> tuple[Any, np.ndarray]:
    assert X.shape[0] > 0, f"batch {current_batch} has no observations"
    return current_batch, _deviance(X, family)


def compute_deviance(
    X,
    family: Literal["binomial", "poisson"] = "binomial",
    batch: Optional[Iterable[Any]] = None,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """Per-gene deviance of an observations x genes count matrix.

    Parameters
    ----------
    X
        Raw counts, dense or sparse, with observations as rows.
    family
        Null model, ``"binomial"`` or ``"poisson"``.
    batch
        One label per observation. When given, deviance is computed within
        each batch level and summed.
    n_jobs
        Workers for per-batch computation, defaults to ``scanpy.settings.n_jobs``.

    Returns
    -------
    Array of length ``X.shape[1]``.
    """
    if family not in FAMILIES:
        raise ConfigurationError(
            f"family must be one of {FAMILIES}, got {family!r}."
        )
    if sparse.issparse(X):
        X = sparse.csr_matrix(X, copy=True)
        X.sum_duplicates()
    else:
        X = np.asarray(X)
    if X.ndim != 2:
        raise ComputationError(f"Expected a 2D count matrix, got shape {X.shape}.")
    _check_counts(X)

    if batch is None:
        return _deviance(X, family)

    _batch = pd.Categorical(batch)
    if len(_batch) != X.shape[0]:
        raise ComputationError(
            f"Length of batch ({len(_batch)}) does not match number of observations ({X.shape[0]})."
        )
    if _batch.isna().any():
        raise ComputationError("batch contains missing values.")

    codes = np.asarray(_batch.codes)
    levels = [(i, b) for i, b in enumerate(_batch.categories) if np.any(codes == i)]
    if len(levels) == 0:
        return np.zeros(X.shape[1])
    _n_jobs = sc.settings.n_jobs if n_jobs is None else n_jobs
    _disable = int(sc.settings.verbosity) < 2
    with tqdm_joblib(
        tqdm(total=len(levels), mininterval=0.5, miniters=1, disable=_disable)
    ) as _:
        res_collector = Parallel(n_jobs=_n_jobs)(
            delayed(_batched_deviance)(
                X[np.flatnonzero(codes == i)],
                family=family,
                current_batch=b,
            )
            for i, b in levels
        )
    res_collector = dict(res_collector)
    return np.sum([res_collector[b] for _, b in levels], axis=0)


def deviance_feature_selection(
    adata: ad.AnnData,
    layer: Optional[str] = "counts",
    family: Literal["binomial", "poisson"] = "binomial",
    batch_key: Optional[str] = None,
    n_top_genes: Optional[int] = None,
    subset: bool = False,
    inplace: bool = True,
    n_jobs: Optional[int] = None,
) -> Optional[pd.DataFrame]:
    if inplace and not isinstance(adata, ad.AnnData):
        msg = (
            "`pp.deviance_feature_selection` expects an `AnnData` argument, "
            "pass `inplace=False` if you want to return a `pd.DataFrame`."
        )
        raise ShapeError(msg)

    X = counts(adata, layer=layer)
    if batch_key is None:
        start = logg.info(f"computing {family} deviance")
        batch = None
    else:
        validate_batch_key(adata, batch_key)
        start = logg.info(
            f"computing {family} deviance per batch using batch key: {batch_key}"
        )
        batch = batch_factor(adata, batch_key)

    dev_key = f"{family}_deviance"
    dev = compute_deviance(X, family=family, batch=batch, n_jobs=n_jobs)
    df = pd.DataFrame({dev_key: dev}, index=adata.var.index)

    mask = np.ones(df.shape[0], dtype=bool)
    if n_top_genes is not None:
        mask[:] = False
        mask[np.argsort(-dev, kind="stable")[:n_top_genes]] = True
    df["highly_deviant"] = mask

    logg.info("    finished", time=start)

    if not inplace:
        if subset:
            df = df.loc[df["highly_deviant"]]
        return df

    adata.uns["deviance"] = {"family": family, "batch_key": batch_key}
    logg.hint(
        "added\n"
        f"    '{dev_key}', float vector (adata.var)\n"
        "    'highly_deviant', boolean vector (adata.var)"
    )
    adata.var[dev_key] = df[dev_key].to_numpy()
    adata.var["highly_deviant"] = mask
    if subset:
        adata._inplace_subset_var(mask)
