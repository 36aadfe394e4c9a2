import scanpy as sc

import biasdetect as bd


def test_set_env_updates_scanpy_settings() -> None:
    verbosity, n_jobs = sc.settings.verbosity, sc.settings.n_jobs
    try:
        bd.set_env(verbosity=1, n_jobs=2)
        assert sc.settings.n_jobs == 2
        assert int(sc.settings.verbosity) == 1
    finally:
        sc.settings.verbosity = verbosity
        sc.settings.n_jobs = n_jobs


def test_namespaces_are_importable() -> None:
    import biasdetect.pp
    import biasdetect.tl

    assert biasdetect.tl.feature_select is bd.tl.feature_select
    assert biasdetect.pp.compute_deviance is bd.pp.compute_deviance
