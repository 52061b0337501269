"""Moment statistics used by the human-readable graph reports."""

from __future__ import annotations

import numpy as np


def moment_statistics(values: np.ndarray) -> str:
    """
    Summarize an array by its first four moments and extrema.

    Args:
        values (np.ndarray): Matrix or vector to describe.

    Returns:
        str: ``"( min x, max y, mean m, stddev s, skewness k, kurtosis u )"``
        followed by the shape. Empty arrays render as ``"( empty )"``.

    """
    arr = np.asarray(values, dtype=np.float64).ravel()
    shape = "x".join(str(d) for d in np.shape(values))
    if arr.size == 0:
        return f"( empty ), [{shape}]"

    mean = arr.mean()
    centred = arr - mean
    var = np.mean(centred**2)
    std = np.sqrt(var)
    if var > 0:
        skewness = np.mean(centred**3) / std**3
        kurtosis = np.mean(centred**4) / var**2 - 3.0
    else:
        skewness = 0.0
        kurtosis = 0.0
    return (
        f"( min {arr.min():.6g}, max {arr.max():.6g}, mean {mean:.6g}, "
        f"stddev {std:.6g}, skewness {skewness:.6g}, kurtosis {kurtosis:.6g} ), "
        f"[{shape}]"
    )
