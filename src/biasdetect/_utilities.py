import contextlib

import joblib
import scanpy as sc


def set_env(verbosity: int = 4, n_jobs: int = 8) -> None:
    sc.settings.verbosity = verbosity
    sc.settings.n_jobs = n_jobs


@contextlib.contextmanager
def tqdm_joblib(tqdm_object):
    """Context manager to patch joblib to report into tqdm progress bar given as argument"""

    def tqdm_print_progress(self):
        if self.n_completed_tasks > tqdm_object.n:
            n_completed = self.n_completed_tasks - tqdm_object.n
            tqdm_object.update(n=n_completed)

    original_print_progress = joblib.parallel.Parallel.print_progress
    joblib.parallel.Parallel.print_progress = tqdm_print_progress

    try:
        yield tqdm_object
    finally:
        joblib.parallel.Parallel.print_progress = original_print_progress
        tqdm_object.close()


__all__ = [
    "set_env",
    "tqdm_joblib",
]
