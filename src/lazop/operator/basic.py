import numpy as np

import lazop.abc.operator as lza
import lazop.info.ptype as lzt
import lazop.math.linalg as lzl
import lazop.runtime as lzrt
import lazop.util as lzu

__all__ = [
    "IdentityOperator",
    "NullOperator",
    "adjoint",
    "transpose",
    "inv",
]


class IdentityOperator(lza.Operator):
    r"""
    Identity operator :math:`I_{N}`.

    The identity has dtype ``bool``: it never promotes the dtype of expressions it takes part in.

    Example
    -------
    .. code-block:: python3

       import numpy as np
       from lazop.operator import IdentityOperator

       I = IdentityOperator(3)
       x = np.arange(3.0)
       np.allclose(I @ x, x)  # True
    """

    def __init__(self, n: lzt.Integer):
        super().__init__()
        self._shape = (int(n), int(n))

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(bool)

    def has_adjoint(self) -> bool:
        return True

    def has_ldiv(self) -> bool:
        return True

    def has_ldiv_inplace(self) -> bool:
        return True

    def _apply(self, arr, trans):
        return arr.copy()

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        lzl.axpby(out, arr, alpha, beta)

    def _solve(self, arr, trans):
        return arr.copy()

    def _ldiv(self, out, arr, trans):
        out[...] = arr

    def _ldiv_inplace(self, arr, trans):
        pass

    def _adjoint(self) -> lzt.OpT:
        return self

    def _transpose(self) -> lzt.OpT:
        return self

    def _inverse(self) -> lzt.OpT:
        return self

    def conj(self) -> lzt.OpT:
        return self

    def _resize(self, n: lzt.Integer):
        self._shape = (int(n), int(n))

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        if xp is None:
            xp = np
        if dtype is None:
            dtype = np.result_type(self.dtype, lzrt.getPrecision().value)
        return xp.eye(self.dim, dtype=dtype)


class NullOperator(lza.Operator):
    r"""
    Zero operator :math:`0_{N}`.
    """

    def __init__(self, n: lzt.Integer):
        super().__init__()
        self._shape = (int(n), int(n))

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(bool)

    def has_adjoint(self) -> bool:
        return True

    def iszero(self) -> bool:
        return True

    def _apply(self, arr, trans):
        xp = lzu.get_array_module(arr)
        return xp.zeros_like(arr)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        if beta == 0:
            out[...] = 0
        elif beta != 1:
            out *= beta

    def _adjoint(self) -> lzt.OpT:
        return self

    def _transpose(self) -> lzt.OpT:
        return self

    def conj(self) -> lzt.OpT:
        return self

    def _resize(self, n: lzt.Integer):
        self._shape = (int(n), int(n))

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        if xp is None:
            xp = np
        if dtype is None:
            dtype = np.result_type(self.dtype, lzrt.getPrecision().value)
        return xp.zeros(self.shape, dtype=dtype)


def adjoint(op: lzt.OpT) -> lzt.OpT:
    """
    Lazy adjoint of an operator.

    See Also
    --------
    :py:attr:`~lazop.abc.Operator.H`
    """
    return op.H


def transpose(op: lzt.OpT) -> lzt.OpT:
    """
    Lazy transpose of an operator.

    See Also
    --------
    :py:attr:`~lazop.abc.Operator.T`
    """
    return op.T


def inv(op: lzt.OpT) -> lzt.OpT:
    """
    Lazy inverse of an operator.

    See Also
    --------
    :py:meth:`~lazop.abc.Operator.inv`
    """
    return op.inv()
