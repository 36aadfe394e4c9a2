import anndata as ad
import numpy as np
import pandas as pd
import pytest


def make_adata(X, obs: pd.DataFrame, n_genes=None) -> ad.AnnData:
    n_genes = X.shape[1] if n_genes is None else n_genes
    gene_ids = [f"ENSG{i:011d}" for i in range(n_genes)]
    var = pd.DataFrame(
        {"gene_id": gene_ids, "gene_name": [f"GENE{i}" for i in range(n_genes)]},
        index=gene_ids,
    )
    adata = ad.AnnData(X=X.copy(), obs=obs, var=var)
    adata.layers["counts"] = X.copy()
    return adata


@pytest.fixture
def batch_adata() -> ad.AnnData:
    """Six spots on two slides, ten genes; GENE0 and GENE1 are 4x higher on slide B."""
    even = np.array([75.0, 50.0, 25.0])
    odd = even[::-1]
    cols = [even if g % 2 == 0 else odd for g in range(10)]
    block = np.column_stack(cols)
    slide_b = block.copy()
    slide_b[:, :2] *= 4
    X = np.vstack([block, slide_b])
    obs = pd.DataFrame(
        {
            "slide": pd.Categorical(["A"] * 3 + ["B"] * 3),
            "sample_id": [f"s{i}" for i in range(6)],
        },
        index=[f"spot{i}" for i in range(6)],
    )
    return make_adata(X, obs)


@pytest.fixture
def random_adata() -> ad.AnnData:
    rng = np.random.default_rng(0)
    n_obs, n_genes = 40, 30
    lam = rng.uniform(2.0, 20.0, size=n_genes)
    slide = np.repeat(["V11L05-333", "V11L05-335"], n_obs // 2)
    scale = np.ones((n_obs, n_genes))
    scale[slide == "V11L05-335", :3] = 5.0
    X = rng.poisson(lam * scale).astype(np.float64)
    obs = pd.DataFrame(
        {
            "slide": pd.Categorical(slide),
            "subject": pd.Categorical(np.tile(["Br1", "Br2", "Br3", "Br4"], n_obs // 4)),
        },
        index=[f"cell{i}" for i in range(n_obs)],
    )
    return make_adata(X, obs)
