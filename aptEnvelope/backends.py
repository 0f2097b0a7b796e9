"""
Backend and threading configuration for aptEnvelope.

Two environment variables are read once, when the package is imported:

APTENVELOPE_BACKEND
    Implementation of the cell-list neighbour search. ``numba`` (default)
    runs JIT-compiled loops; ``numpy`` runs vectorised array code.
APTENVELOPE_WORKERS
    Threads used to build cluster envelopes. ``1`` (default) builds them
    serially, ``N`` uses N threads and ``-1`` one thread per core.

Example
-------
>>> import os
>>> os.environ['APTENVELOPE_BACKEND'] = 'numpy'  # before importing aptEnvelope
>>> os.environ['APTENVELOPE_WORKERS'] = '4'
"""

from __future__ import annotations

import os

BACKEND_ENV_VAR = 'APTENVELOPE_BACKEND'
AVAILABLE_BACKENDS = frozenset({'numpy', 'numba'})
DEFAULT_BACKEND = 'numba'

WORKERS_ENV_VAR = 'APTENVELOPE_WORKERS'
DEFAULT_WORKERS = 1


def _env_setting(name: str) -> str:
    """Stripped value of an environment variable, '' when unset."""
    return os.environ.get(name, '').strip()


def _resolve_backend() -> str:
    """Validate APTENVELOPE_BACKEND; matching ignores case.

    Raises
    ------
    ValueError
        If the variable names no known backend.
    """
    value = _env_setting(BACKEND_ENV_VAR).lower()
    if not value:
        return DEFAULT_BACKEND
    if value in AVAILABLE_BACKENDS:
        return value
    raise ValueError(
        f"Invalid {BACKEND_ENV_VAR} '{value}'. "
        f"Must be one of: {', '.join(sorted(AVAILABLE_BACKENDS))}"
    )


def _resolve_workers() -> int:
    """Validate APTENVELOPE_WORKERS.

    Raises
    ------
    ValueError
        If the variable is not an integer, or is zero.
    """
    value = _env_setting(WORKERS_ENV_VAR)
    if not value:
        return DEFAULT_WORKERS
    try:
        count = int(value)
    except ValueError:
        raise ValueError(f"Invalid {WORKERS_ENV_VAR} '{value}'. Must be an integer.") from None
    if count == 0:
        raise ValueError(f"Invalid {WORKERS_ENV_VAR} '{value}'. Must be non-zero.")
    return count


BACKEND = _resolve_backend()
WORKERS = _resolve_workers()


def get_backend() -> str:
    """Name of the neighbour search backend chosen at import, 'numpy' or 'numba'."""
    return BACKEND


def get_workers() -> int:
    """Envelope thread count chosen at import; -1 stands for every core."""
    return WORKERS


def resolve_worker_count(workers: int | None = None) -> int:
    """
    Turn a requested worker count into a concrete thread count.

    Parameters
    ----------
    workers : int, optional
        Requested count. ``None`` uses ``APTENVELOPE_WORKERS``; ``-1`` means
        one thread per available core.

    Returns
    -------
    int
        A positive number of threads.

    Raises
    ------
    ValueError
        If ``workers`` is zero or below -1.
    """
    if workers is None:
        workers = get_workers()
    if workers == -1:
        return os.cpu_count() or 1
    if workers < 1:
        raise ValueError(f"workers must be a positive integer or -1, got {workers}")
    return workers
