from ._feature_select import RESULT_COLS, feature_select
from ._flag import flag_biased_genes

__all__ = [
    "RESULT_COLS",
    "feature_select",
    "flag_biased_genes",
]
