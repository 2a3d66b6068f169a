# Custom exceptions raised inside lazop.
#
# Each exception also derives from the closest built-in so that callers may catch either.


class LazopError(Exception):
    """
    Parent class of all errors raised in lazop.
    """


class ShapeMismatchError(LazopError, ValueError):
    """
    Operand shapes are incompatible for a combination or an application.
    """


class UnsquareError(ShapeMismatchError):
    """
    Overwrite-in-place solve requested on a non-square operator (or non-square composition member).
    """


class CapabilityError(LazopError, NotImplementedError):
    """
    Requested operation is not supported by an operator (or one of its children).
    """


class NotInvertibleError(LazopError, ValueError):
    """
    Solve/inverse requested on a provably singular operator.
    """


class CacheError(LazopError, RuntimeError):
    """
    In-place evaluation requested before :py:meth:`~lazop.abc.Operator.cache_operator` was called for a compatible
    input.
    """


def _kind(op) -> str:
    return type(op).__name__


def shape_mismatch(op, expected, got) -> ShapeMismatchError:
    msg = f"{_kind(op)}: expected shape {expected}, got {got}."
    return ShapeMismatchError(msg)


def capability_missing(op, what: str) -> CapabilityError:
    msg = f"{_kind(op)}: {what} not supported for this operator kind."
    return CapabilityError(msg)


def cache_uninitialized(op) -> CacheError:
    msg = f"{_kind(op)}: cache not initialized; call cache_operator(u) first."
    return CacheError(msg)


def cache_incompatible(op, cached, got) -> CacheError:
    msg = f"{_kind(op)}: cached for {cached}, got {got}; call cache_operator(u) with a matching input."
    return CacheError(msg)


__all__ = [
    "LazopError",
    "ShapeMismatchError",
    "UnsquareError",
    "CapabilityError",
    "NotInvertibleError",
    "CacheError",
    "shape_mismatch",
    "capability_missing",
    "cache_uninitialized",
    "cache_incompatible",
]
