"""Single-precision runtime value model shared by the store and the evaluator."""

from __future__ import annotations

import math
import numbers

import jax.numpy as jnp

from .errors import MalformedNumberError

FLOAT_DTYPE = jnp.float32


def zero() -> jnp.ndarray:
    return jnp.zeros((), dtype=FLOAT_DTYPE)


def validate_value(value: object, *, where: str = "value") -> None:
    if isinstance(value, bool):
        raise TypeError(f"{where} must be a number, not bool")
    if isinstance(value, numbers.Real):
        return
    ndim = getattr(value, "ndim", None)
    dtype = getattr(value, "dtype", None)
    if ndim is not None and dtype is not None:
        if ndim != 0:
            raise TypeError(f"{where} must be a scalar, got shape {tuple(value.shape)}")
        if not jnp.issubdtype(dtype, jnp.number) or jnp.issubdtype(dtype, jnp.complexfloating):
            raise TypeError(f"{where} has non-real dtype {dtype}")
        return
    raise TypeError(f"{where} has unsupported runtime type {type(value).__name__}")


def as_scalar(value: object, *, where: str = "value") -> jnp.ndarray:
    """Coerce a host or runtime number to a 0-d float32 array."""
    validate_value(value, where=where)
    if isinstance(value, jnp.ndarray) and value.dtype == FLOAT_DTYPE:
        return value
    return jnp.asarray(value, dtype=FLOAT_DTYPE)


def as_vector(values: object, *, where: str = "values") -> jnp.ndarray:
    arr = jnp.asarray(values, dtype=FLOAT_DTYPE)
    if arr.ndim != 1:
        raise TypeError(f"{where} must be one-dimensional, got shape {tuple(arr.shape)}")
    return arr


def to_float(value: jnp.ndarray) -> float:
    return float(value)


def truncate_index(value: jnp.ndarray) -> int:
    """Truncate an evaluated subscript toward zero."""
    real = float(value)
    if not math.isfinite(real):
        raise MalformedNumberError(f"Array index {format_scalar(value)} is not a finite number")
    return int(real)


def format_scalar(value: object) -> str:
    real = float(value)
    if math.isnan(real):
        return "NaN"
    if math.isinf(real):
        return "Infinity" if real > 0 else "-Infinity"
    if real.is_integer() and abs(real) < 1e16:
        return str(int(real))
    return format(real, ".7g")
