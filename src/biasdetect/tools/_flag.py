import numpy as np
import pandas as pd
from scanpy import logging as logg

from .._exceptions import ConfigurationError


def flag_biased_genes(
    bias_df: pd.DataFrame,
    nsd_dev: float = 5.0,
    nsd_rank: float = 5.0,
) -> pd.DataFrame:
    missing = [c for c in ["nSD_dev", "nSD_rank"] if c not in bias_df.columns]
    if len(missing) > 0:
        raise ConfigurationError(
            f"Columns {missing} not found, pass the output of `tl.feature_select`."
        )

    df = bias_df.copy()
    nsd_d = df["nSD_dev"].to_numpy(dtype=np.float64)
    nsd_r = df["nSD_rank"].to_numpy(dtype=np.float64)
    # NaN compares False, infinite z-scores are excluded explicitly
    df["dev_outlier"] = np.isfinite(nsd_d) & (nsd_d >= nsd_dev)
    df["rank_outlier"] = np.isfinite(nsd_r) & (nsd_r >= nsd_rank)
    df["biased"] = df["dev_outlier"] | df["rank_outlier"]
    logg.info(
        f"flagged {int(df['biased'].sum())} of {df.shape[0]} genes "
        f"(nSD_dev >= {nsd_dev}: {int(df['dev_outlier'].sum())}, "
        f"nSD_rank >= {nsd_rank}: {int(df['rank_outlier'].sum())})"
    )
    return df
