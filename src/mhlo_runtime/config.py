from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from mhlo_runtime.errors import RuntimeBackendError

SEED_ENV_VAR = "MHLO_RUNTIME_SEED"


@dataclass(frozen=True)
class RuntimeConfig:
    default_seed: int | None = None


def load_config(environ: Mapping[str, str] | None = None) -> RuntimeConfig:
    """Read runtime settings from the environment.

    ``MHLO_RUNTIME_SEED`` makes every random operator seed its generator with
    the given integer instead of OS entropy.
    """

    if environ is None:
        environ = os.environ
    raw_seed = environ.get(SEED_ENV_VAR)
    if raw_seed is None or not raw_seed.strip():
        return RuntimeConfig()
    try:
        seed = int(raw_seed.strip(), 0)
    except ValueError as exc:
        raise RuntimeBackendError(
            f"{SEED_ENV_VAR} must be an integer, got {raw_seed!r}"
        ) from exc
    if seed < 0:
        raise RuntimeBackendError(f"{SEED_ENV_VAR} must be non-negative, got {seed}")
    return RuntimeConfig(default_seed=seed)
