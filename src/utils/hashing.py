"""SHA-256 digests for rendered buffers and configs.

Provides:
    - sha256_array(): Hash array values together with shape and dtype
    - sha256_string(): Hash a UTF-8 string
    - hash_dict(): Hash a JSON-serializable dict with sorted keys

Used for:
    - Determinism checks: compose(config) twice → identical digests
    - Session cache keys: skip recomposition when the config digest matches
    - Provenance metadata written next to rendered PNGs

Results are hex strings (64 chars).

Note: Module named `hashing.py` to avoid shadowing builtin `hash()`.
"""

import hashlib
import json

import numpy as np


def sha256_array(a: np.ndarray) -> str:
    """Compute SHA-256 of array contents, shape and dtype.

    Notes
    -----
    Non-contiguous views are hashed by value (a contiguous copy is made),
    so a slice and its copy hash the same.

    Examples
    --------
    >>> digest = sha256_array(buffer.pixels)
    """
    sha256 = hashlib.sha256()
    sha256.update(str(a.dtype).encode('utf-8'))
    sha256.update(repr(tuple(a.shape)).encode('utf-8'))
    sha256.update(np.ascontiguousarray(a).tobytes())
    return sha256.hexdigest()


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of a string."""
    sha256 = hashlib.sha256()
    sha256.update(s.encode('utf-8'))
    return sha256.hexdigest()


def hash_dict(d: dict) -> str:
    """Compute SHA-256 hash of a dictionary (sorted keys).

    Parameters
    ----------
    d : dict
        JSON-serializable dictionary (use model_dump(mode="json") for
        pydantic models)

    Returns
    -------
    str
        SHA-256 hex digest
    """
    return sha256_string(json.dumps(d, sort_keys=True))
