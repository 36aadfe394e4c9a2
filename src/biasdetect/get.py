from collections.abc import Iterable
from typing import Any, Optional

import pandas as pd

from ._exceptions import ShapeError
from ._validate import validate_input, validate_var_keys


def obs_categories(
    adata: Any,
    key: str,
) -> Iterable[str]:
    return list(
        adata.obs[key].cat.categories
        if isinstance(adata.obs[key].dtype, pd.CategoricalDtype)
        else adata.obs[key].unique()
    )


def batch_factor(
    adata: Any,
    key: str,
) -> pd.Categorical:
    return pd.Categorical(
        adata.obs[key].to_numpy(),
        categories=obs_categories(adata, key),
        ordered=False,
    )


def counts(
    adata: Any,
    layer: Optional[str] = "counts",
):
    validate_input(adata, layer=layer)
    return adata.X if layer is None else adata.layers[layer]


def gene_table(
    adata: Any,
    gene_id_key: Optional[str] = "gene_id",
    gene_name_key: Optional[str] = "gene_name",
) -> pd.DataFrame:
    validate_var_keys(adata, [gene_id_key, gene_name_key])
    ids = (
        pd.Index(adata.var.index)
        if gene_id_key is None
        else pd.Index(adata.var[gene_id_key])
    )
    if ids.has_duplicates:
        dups = ids[ids.duplicated()].unique().to_list()
        raise ShapeError(f"Gene identifiers are not unique: {dups[:5]}")
    names = (
        ids.astype(str).to_numpy()
        if gene_name_key is None
        else adata.var[gene_name_key].to_numpy()
    )
    return pd.DataFrame(
        dict(gene=ids.astype(str).to_numpy(), gene_name=names),
        index=pd.RangeIndex(len(ids)),
    )


__all__ = [
    "obs_categories",
    "batch_factor",
    "counts",
    "gene_table",
]
