"""Input validation for analysis records."""

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

__all__ = ["AlignmentError", "validate_alignment"]


class AlignmentError(ValueError):
    """Series of one configuration do not share a common sample index."""


def validate_alignment(
    series: Mapping[str, np.ndarray],
    timestamps: Sequence[Any] | np.ndarray | None = None,
) -> int:
    """
    Validate that every series and the timestamp vector have the same length.

    Args:
        series: Named concentration series of one configuration
        timestamps: Optional timestamps shared by all series

    Returns:
        Common series length

    Raises:
        AlignmentError: If lengths disagree or a series is not one-dimensional
    """
    lengths: dict[str, int] = {}
    for name, values in series.items():
        arr = np.asarray(values)
        if arr.ndim != 1:
            raise AlignmentError(
                f"Series '{name}' must be one-dimensional, got shape {arr.shape}"
            )
        lengths[name] = len(arr)

    if not lengths:
        raise AlignmentError("No series supplied")

    distinct = set(lengths.values())
    if len(distinct) > 1:
        detail = ", ".join(f"{name}={n}" for name, n in lengths.items())
        raise AlignmentError(f"Series lengths differ: {detail}")

    length = distinct.pop()
    if timestamps is not None and len(timestamps) != length:
        raise AlignmentError(
            f"Timestamp vector has {len(timestamps)} entries, series have {length}"
        )

    return length
