import copy
import functools
import operator

import numpy as np

import lazop.abc.operator as lza
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.math.linalg as lzl

__all__ = [
    "ScalarOperator",
    "AddedScalarOperator",
    "ComposedScalarOperator",
    "InvertedScalarOperator",
]


class ScalarOperator(lza.ScalarOperatorBase):
    r"""
    Time/state-dependent scalar :math:`\alpha(u, p, t)`, acting as :math:`\alpha I` on inputs of any size.

    Parameters
    ----------
    val: Number
        Initial value.
    update_func: callable
        Coefficient update ``(old_val, u, p, t) -> new_val``.  (Default: constant scalar.)

    Example
    -------
    .. code-block:: python3

       from lazop.operator import ScalarOperator

       a = ScalarOperator(0.0, update_func=lambda a, u, p, t: t)
       b = a.update_coefficients(None, None, 2.0)
       b.item()   # 2.0
       a.item()   # 0.0
    """

    def __init__(self, val: lzt.Number, update_func: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC):
        super().__init__()
        self._val = val
        self._update_func = update_func

    def item(self) -> lzt.Number:
        return self._val

    def isconstant(self) -> bool:
        return self._update_func is lza.DEFAULT_UPDATE_FUNC

    def update_coefficients(self, u, p, t) -> lzt.OpT:
        if self.isconstant():
            return self
        op = copy.copy(self)
        op._val = self._update_func(self._val, u, p, t)
        return op

    def update_coefficients_inplace(self, u, p, t) -> lzt.OpT:
        self._val = self._update_func(self._val, u, p, t)
        return self

    def conj(self) -> lzt.OpT:
        if self.isconstant():
            if np.iscomplexobj(self._val):
                return ScalarOperator(np.conj(self._val))
            return self

        f = self._update_func

        def update_func(val, u, p, t):
            return np.conj(f(np.conj(val), u, p, t))

        return ScalarOperator(np.conj(self._val), update_func=update_func)

    def _expr(self) -> tuple:
        return (self,)


class AddedScalarOperator(lza.ScalarOperatorBase):
    r"""
    Lazy sum :math:`\alpha_{1} + \cdots + \alpha_{k}` of scalar operators.
    """

    def __init__(self, *ops: lzt.ScalarOpT):
        super().__init__()
        self._ops = tuple(ops)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(*[op.dtype for op in self._ops])

    def _children(self) -> tuple:
        return self._ops

    def _set_children(self, ops):
        self._ops = tuple(ops)

    def item(self) -> lzt.Number:
        return functools.reduce(operator.add, [op.item() for op in self._ops])

    def conj(self) -> lzt.OpT:
        return AddedScalarOperator(*[op.conj() for op in self._ops])

    def _expr(self) -> tuple:
        return ("add", *self._ops)


class ComposedScalarOperator(lza.ScalarOperatorBase):
    r"""
    Lazy product :math:`\alpha_{1} \cdots \alpha_{k}` of scalar operators.

    The product is exactly zero as soon as one factor is zero, even if other factors cannot be evaluated.
    """

    def __init__(self, *ops: lzt.ScalarOpT):
        super().__init__()
        self._ops = tuple(ops)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(*[op.dtype for op in self._ops])

    def _children(self) -> tuple:
        return self._ops

    def _set_children(self, ops):
        self._ops = tuple(ops)

    def item(self) -> lzt.Number:
        if self.iszero():
            return self.dtype.type(0)
        return functools.reduce(operator.mul, [op.item() for op in self._ops])

    def iszero(self) -> bool:
        return any(op.iszero() for op in self._ops)

    def has_ldiv(self) -> bool:
        return all(op.has_ldiv() for op in self._ops)

    def conj(self) -> lzt.OpT:
        return ComposedScalarOperator(*[op.conj() for op in self._ops])

    def _expr(self) -> tuple:
        return ("compose", *self._ops)


class InvertedScalarOperator(lza.ScalarOperatorBase):
    r"""
    Lazy reciprocal :math:`\alpha^{-1}` of a scalar operator.

    Multiplication divides by :math:`\alpha`, solving multiplies by it.
    """

    def __init__(self, op: lzt.ScalarOpT):
        super().__init__()
        self._op = op

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self._op.dtype, 1.0)

    def _children(self) -> tuple:
        return (self._op,)

    def _set_children(self, ops):
        (self._op,) = ops

    def item(self) -> lzt.Number:
        val = self._op.item()
        if val == 0:
            raise lze.NotInvertibleError(f"{self!r}: operand is zero.")
        return 1 / val

    def iszero(self) -> bool:
        return False

    def has_mul(self) -> bool:
        return self._op.has_ldiv()

    def has_mul_inplace(self) -> bool:
        return self._op.has_ldiv()

    def has_ldiv(self) -> bool:
        return self._op.has_mul()

    def has_ldiv_inplace(self) -> bool:
        return self._op.has_mul_inplace()

    def _require(self, predicate: str, what: str):
        if predicate.startswith("has_mul") and self._op.iszero():
            raise lze.NotInvertibleError(f"{self!r}: inverse of zero, {what} impossible.")
        super()._require(predicate, what)

    def _apply(self, arr, trans):
        return self._op._solve(arr, trans)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        lzl.axpby(out, arr, alpha / self._op._value(trans), beta)

    def _solve(self, arr, trans):
        return self._op._apply(arr, trans)

    def _ldiv(self, out, arr, trans):
        self._op._mul(out, arr, trans, 1, 0)

    def _ldiv_inplace(self, arr, trans):
        arr *= self._op._value(trans)

    def conj(self) -> lzt.OpT:
        return InvertedScalarOperator(self._op.conj())

    def _expr(self) -> tuple:
        return ("inv", self._op)
