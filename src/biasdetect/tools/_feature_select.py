"""
Batch bias of gene deviance.

Deviance feature selection is run twice on the same variable genes, once
ignoring and once modelling a batch covariate. Genes whose deviance or rank
drops unusually far once the batch is modelled owe their apparent variability
to the batch rather than to biology.
"""

import warnings
from typing import Any, Callable, Iterable, Literal, Optional

import numpy as np
import pandas as pd
from scanpy import logging as logg

from .._exceptions import (
    ComputationError,
    ConfigurationError,
    StatisticalDegeneracyWarning,
)
from .._validate import validate_batch_key, validate_gene_set, validate_input
from ..get import batch_factor, counts, gene_table
from ..preprocessing import FAMILIES, compute_deviance
from ._stats import descending_rank, zscore

RESULT_COLS = [
    "gene",
    "gene_name",
    "dev_default",
    "rank_default",
    "dev_batch",
    "rank_batch",
    "d_diff",
    "nSD_dev",
    "r_diff",
    "nSD_rank",
]


def _deviance_table(
    X,
    genes: pd.DataFrame,
    family: str,
    batch: Optional[pd.Categorical],
    deviance_fn: Callable[..., Iterable[float]],
) -> pd.DataFrame:
    dev = np.asarray(deviance_fn(X, family=family, batch=batch), dtype=np.float64)
    dev = dev.ravel()
    if dev.shape[0] != genes.shape[0]:
        raise ComputationError(
            f"Deviance routine returned {dev.shape[0]} values for {genes.shape[0]} genes."
        )
    df = genes.copy()
    df["dev"] = dev
    df["rank"] = descending_rank(dev)
    return df


def _warn_degenerate(msg: str) -> None:
    logg.warning(msg)
    warnings.warn(msg, StatisticalDegeneracyWarning, stacklevel=4)


def _check_degeneracy(df: pd.DataFrame) -> None:
    n_zero = int(np.isclose(df["dev_batch"].to_numpy(dtype=np.float64), 0.0).sum())
    if n_zero > 0:
        _warn_degenerate(
            f"{n_zero} genes have zero or near-zero deviance with batch, "
            "their d_diff is not finite or inflated."
        )
    if df.shape[0] == 1:
        _warn_degenerate(
            "Only one gene is shared by both runs, nSD_dev and nSD_rank are undefined."
        )
        return
    for col in ["d_diff", "r_diff"]:
        vals = df[col].to_numpy(dtype=np.float64)
        if vals.size > 1 and np.all(np.isfinite(vals)) and np.ptp(vals) == 0:
            _warn_degenerate(f"{col} has zero variance, its z-scores are undefined.")


def feature_select(
    adata: Any,
    batch_effect: Optional[str] = None,
    VGs: Any = None,
    layer: Optional[str] = "counts",
    gene_id_key: Optional[str] = "gene_id",
    gene_name_key: Optional[str] = "gene_name",
    family: Literal["binomial", "poisson"] = "binomial",
    deviance_fn: Optional[Callable[..., Iterable[float]]] = None,
) -> pd.DataFrame:
    """Compare gene deviance and rank with and without a batch covariate.

    Parameters
    ----------
    adata
        AnnData-like object with observations (cells or spots) as rows. It is
        not modified.
    batch_effect
        Column of ``.obs`` holding the batch covariate, e.g. ``"slide"``,
        ``"subject"`` or ``"sample_id"``.
    VGs
        Identifiers of highly or spatially variable genes, matched against
        ``.var[gene_id_key]``. A one-column DataFrame is accepted.
    layer
        Layer holding raw counts, ``None`` for ``.X``.
    gene_id_key, gene_name_key
        Columns of ``.var`` with stable identifiers and display names.
        ``gene_id_key=None`` uses ``.var_names``.
    family
        Deviance family passed to the deviance routine.
    deviance_fn
        Replacement for :func:`biasdetect.pp.compute_deviance`, called as
        ``deviance_fn(X, family=family, batch=batch)`` and returning one value
        per gene.

    Returns
    -------
    One row per gene with ``dev_default``/``rank_default`` (no batch),
    ``dev_batch``/``rank_batch`` (with batch), the relative deviance
    difference ``d_diff``, the rank difference ``r_diff`` and their z-scores
    ``nSD_dev`` and ``nSD_rank``.
    """
    validate_input(adata, layer=layer)
    validate_batch_key(adata, batch_effect)
    vgs = validate_gene_set(VGs)
    if deviance_fn is None and family not in FAMILIES:
        raise ConfigurationError(f"family must be one of {FAMILIES}, got {family!r}.")
    _deviance_fn = compute_deviance if deviance_fn is None else deviance_fn

    batch = batch_factor(adata, batch_effect)
    genes = gene_table(adata, gene_id_key=gene_id_key, gene_name_key=gene_name_key)
    keep = genes["gene"].isin(set(vgs)).to_numpy()
    X = counts(adata, layer=layer)[:, np.flatnonzero(keep)]
    genes = genes.loc[keep].reset_index(drop=True)
    logg.info(
        f"using {genes.shape[0]} of {len(vgs)} variable genes, "
        f"{len(batch.categories)} levels of {batch_effect}"
    )

    start = logg.info("Step 1: running feature selection without batch...")
    bd_df = _deviance_table(X, genes, family, None, _deviance_fn)

    logg.info("Step 2: running feature selection with batch...")
    bd_batch_df = _deviance_table(X, genes, family, batch, _deviance_fn)

    logg.info("Step 3: calculating deviance and rank difference...")
    df = pd.merge(
        bd_df,
        bd_batch_df,
        how="inner",
        on=["gene", "gene_name"],
        suffixes=("_default", "_batch"),
    )
    with np.errstate(divide="ignore", invalid="ignore"):
        df["d_diff"] = (df["dev_default"] - df["dev_batch"]) / df["dev_batch"]
    df["nSD_dev"] = zscore(df["d_diff"])
    df["r_diff"] = df["rank_batch"] - df["rank_default"]
    df["nSD_rank"] = zscore(df["r_diff"])
    _check_degeneracy(df)

    df = df[RESULT_COLS]
    df.index = pd.Index(df["gene"].to_numpy())
    logg.info("    finished", time=start)
    return df
