import contextlib
import enum

import numpy as np

import lazop.info.ptype as lzt

__all__ = [
    "Width",
    "CWidth",
    "getPrecision",
    "Precision",
]


@enum.unique
class Width(enum.Enum):
    """
    Machine-dependent floating-point types.
    """

    SINGLE = np.dtype(np.single)
    DOUBLE = np.dtype(np.double)

    def eps(self) -> lzt.Real:
        """
        Machine precision of a floating-point type.

        Returns the difference between 1 and the next smallest representable float larger than 1.
        """
        eps = np.finfo(self.value).eps
        return float(eps)

    @property
    def complex(self) -> "CWidth":
        """
        Returns precision-equivalent complex-valued type.
        """
        return CWidth[self.name]


@enum.unique
class CWidth(enum.Enum):
    """
    Machine-dependent complex-valued floating-point types.
    """

    SINGLE = np.dtype(np.csingle)
    DOUBLE = np.dtype(np.cdouble)

    @property
    def real(self) -> "Width":
        """
        Returns precision-equivalent real-valued type.
        """
        return Width[self.name]


class Precision(contextlib.AbstractContextManager):
    """
    Context Manager to locally redefine the default floating-point precision.

    The default precision is used whenever an operator cannot infer a dtype from its payload, e.g. when materializing
    an :py:class:`~lazop.operator.IdentityOperator` via ``asarray()``.

    Example
    -------
    .. code-block:: python3

       import lazop.runtime as lzrt

       lzrt.getPrecision()                      # Width.DOUBLE
       with lzrt.Precision(lzrt.Width.SINGLE):
           lzrt.getPrecision()                  # Width.SINGLE
       lzrt.getPrecision()                      # Width.DOUBLE
    """

    def __init__(self, width: Width):
        self._width = width
        self._width_prev = getPrecision()

    def __enter__(self) -> "Precision":
        _setPrecision(self._width)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        _setPrecision(self._width_prev)
        return False


def getPrecision() -> Width:
    """
    Query current FP precision.
    """
    state = globals()
    return state["__width"]


def _setPrecision(width: Width):
    # For internal use only. It is recommended to modify FP-precision locally using the `Precision`
    # context manager.
    state = globals()
    state["__width"] = width


__width = Width.DOUBLE  # default FP-precision.
