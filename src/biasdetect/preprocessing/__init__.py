from ._deviance import FAMILIES, compute_deviance, deviance_feature_selection

__all__ = [
    "FAMILIES",
    "compute_deviance",
    "deviance_feature_selection",
]
