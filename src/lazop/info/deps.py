import collections.abc as cabc
import enum
import importlib.util
import types

import dask.array
import numpy
import scipy.sparse
import scipy.sparse.linalg

#: Show if CuPy-based backends are available.
CUPY_ENABLED: bool = importlib.util.find_spec("cupy") is not None
if CUPY_ENABLED:
    try:
        import cupy
        import cupyx.scipy.sparse
        import cupyx.scipy.sparse.linalg

        cupy.is_available()  # will fail if hardware/drivers/runtime missing
    except Exception:
        CUPY_ENABLED = False


@enum.unique
class NDArrayInfo(enum.Enum):
    """
    Dense array backends operators may hold as payload or act upon.
    """

    NUMPY = enum.auto()
    DASK = enum.auto()
    CUPY = enum.auto()

    @classmethod
    def default(cls) -> "NDArrayInfo":
        """Backend used when none can be inferred from the inputs."""
        return cls.NUMPY

    def available(self) -> bool:
        return (self != NDArrayInfo.CUPY) or CUPY_ENABLED

    def type(self) -> type:
        """Array type associated to a backend."""
        if not self.available():
            return type(None)
        return {
            "NUMPY": lambda: numpy.ndarray,
            "DASK": lambda: dask.array.core.Array,
            "CUPY": lambda: cupy.ndarray,
        }[self.name]()

    @classmethod
    def from_obj(cls, obj) -> "NDArrayInfo":
        """Find the backend of array `obj`."""
        if obj is not None:
            for ndi in cls:
                if ndi.available() and isinstance(obj, ndi.type()):
                    return ndi
        raise ValueError(f"No known array type to match {obj}.")

    def module(self, linalg: bool = False) -> types.ModuleType:
        """
        Array namespace of a backend.

        Parameters
        ----------
        linalg: bool
            Return the linear-algebra submodule instead (same API as :py:mod:`numpy.linalg`).

        Returns
        -------
        xp: ModuleType
            Namespace, or None if the backend is not installed.
        """
        if not self.available():
            return None
        xp = {
            "NUMPY": lambda: numpy,
            "DASK": lambda: dask.array,
            "CUPY": lambda: cupy,
        }[self.name]()
        return xp.linalg if linalg else xp


@enum.unique
class SparseArrayInfo(enum.Enum):
    """
    Sparse array backends accepted as :py:class:`~lazop.operator.MatrixOperator` payloads.
    """

    SCIPY_SPARSE = enum.auto()
    CUPY_SPARSE = enum.auto()

    def available(self) -> bool:
        return (self != SparseArrayInfo.CUPY_SPARSE) or CUPY_ENABLED

    def type(self) -> tuple[type]:
        """Array type(s) associated to a backend."""
        if not self.available():
            return (type(None),)
        elif self == SparseArrayInfo.SCIPY_SPARSE:
            # `*_array` classes descend from `sparray`, `*_matrix` classes from `spmatrix`.
            return (scipy.sparse.sparray, scipy.sparse.spmatrix)
        else:
            return (cupyx.scipy.sparse.spmatrix,)

    @classmethod
    def from_obj(cls, obj) -> "SparseArrayInfo":
        """Find the backend of sparse array `obj`."""
        if obj is not None:
            for sai in cls:
                if sai.available() and isinstance(obj, sai.type()):
                    return sai
        raise ValueError(f"No known sparse array type to match {obj}.")

    def module(self, linalg: bool = False) -> types.ModuleType:
        """
        Sparse namespace of a backend.

        Parameters
        ----------
        linalg: bool
            Return the linear-algebra submodule instead (same API as :py:mod:`scipy.sparse.linalg`).
        """
        if not self.available():
            return None
        elif self == SparseArrayInfo.SCIPY_SPARSE:
            return scipy.sparse.linalg if linalg else scipy.sparse
        else:
            return cupyx.scipy.sparse.linalg if linalg else cupyx.scipy.sparse


def supported_array_types() -> cabc.Collection[type]:
    """Dense array types usable in the current install."""
    return tuple(ndi.type() for ndi in NDArrayInfo if ndi.available())


def supported_array_modules() -> cabc.Collection[types.ModuleType]:
    """Dense array namespaces usable in the current install."""
    return tuple(ndi.module() for ndi in NDArrayInfo if ndi.available())


def supported_sparse_types() -> cabc.Collection[type]:
    """Sparse array types usable in the current install."""
    return tuple(t for sai in SparseArrayInfo if sai.available() for t in sai.type())


__all__ = [
    "CUPY_ENABLED",
    "NDArrayInfo",
    "SparseArrayInfo",
    "supported_array_types",
    "supported_array_modules",
    "supported_sparse_types",
]
