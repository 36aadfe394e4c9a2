from collections.abc import Iterable
from typing import Any, Optional

import pandas as pd
from pandas.api.types import is_numeric_dtype
from scanpy import logging as logg

from ._exceptions import ConfigurationError, ShapeError


def isiterable(x) -> bool:
    return not isinstance(x, str) and isinstance(x, Iterable)


def validate_input(adata: Any, layer: Optional[str] = None) -> None:
    for attr in ["obs", "var", "shape"]:
        if not hasattr(adata, attr):
            raise ShapeError(
                f"Input of type {type(adata).__name__} has no .{attr}; "
                "expected an AnnData-like object."
            )
    if not isinstance(adata.obs, pd.DataFrame) or not isinstance(
        adata.var, pd.DataFrame
    ):
        raise ShapeError("Input .obs and .var must be pandas DataFrames.")
    if layer is None:
        if getattr(adata, "X", None) is None:
            raise ShapeError("Input has no .X matrix.")
    elif not hasattr(adata, "layers") or layer not in adata.layers.keys():
        raise ShapeError(f"Could not find layer {layer} in .layers.")
    n_obs, n_vars = adata.shape
    if adata.obs.shape[0] != n_obs or adata.var.shape[0] != n_vars:
        raise ShapeError(
            f"Metadata does not match matrix shape {adata.shape}: "
            f"{adata.obs.shape[0]} .obs rows, {adata.var.shape[0]} .var rows."
        )
    return


def validate_var_keys(adata: Any, keys: Iterable[Optional[str]]) -> None:
    for k in keys:
        if k is not None and k not in adata.var.columns:
            raise ShapeError(f"Could not find key {k} in .var.columns.")
    return


def validate_batch_key(adata: Any, batch_key: Optional[str]) -> None:
    if batch_key is None:
        raise ConfigurationError("Please provide a valid batch_effect.")
    if not isinstance(batch_key, str) or batch_key == "":
        raise ConfigurationError(
            f"batch_effect must be a column name, got {batch_key!r}."
        )
    if batch_key not in adata.obs.columns:
        raise ConfigurationError(
            f"The batch_effect {batch_key} is not a valid column of .obs."
        )
    if adata.obs[batch_key].isna().any():
        raise ConfigurationError(
            f"Key {batch_key} in .obs.columns contains missing values."
        )
    if is_numeric_dtype(adata.obs[batch_key]):
        logg.warning(
            f"Key {batch_key} in .obs.columns is numeric dtype, treating values as categories."
        )
    return


def validate_gene_set(genes: Any) -> list[str]:
    if genes is None:
        raise ConfigurationError("Please provide variable genes (VGs).")
    if isinstance(genes, pd.DataFrame):
        if genes.shape[1] != 1:
            raise ConfigurationError(
                f"VGs as a DataFrame must have exactly one column, got {genes.shape[1]}."
            )
        genes = genes.iloc[:, 0]
    _genes = [genes] if isinstance(genes, str) else genes
    if not isiterable(_genes):
        raise ConfigurationError(
            f"VGs must be a collection of gene identifiers, got {type(genes).__name__}."
        )
    _genes = [str(g) for g in _genes]
    if len(_genes) == 0:
        raise ConfigurationError("VGs is empty.")
    return _genes


__all__ = [
    "isiterable",
    "validate_input",
    "validate_var_keys",
    "validate_batch_key",
    "validate_gene_set",
]
