"""
Operator Arithmetic.

Arithmetic on operators is lazy: each rule below synthesizes a combinator node wrapping its operands, after applying
the simplifications listed in its docstring.
"""

import warnings

import numpy as np

import lazop.abc.operator as lza
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.info.warning as lzw
import lazop.math.linalg as lzl
import lazop.util as lzu

__all__ = [
    "Rule",
    "ScaleRule",
    "AddRule",
    "ChainRule",
    "PowerRule",
    "AdjointRule",
    "TransposeRule",
    "InvertRule",
    "ScaledOperator",
    "AddedOperator",
    "ComposedOperator",
    "AdjointOperator",
    "TransposedOperator",
    "InvertedOperator",
]


def _lift(x) -> lzt.OpT:
    # numbers -> scalar operators
    if isinstance(x, lza.Operator):
        return x
    from lazop.operator.scalar import ScalarOperator

    return ScalarOperator(x)


def _is_scalar(op) -> bool:
    return isinstance(op, lza.ScalarOperatorBase)


class Rule:
    def op(self) -> lzt.OpT:
        """
        Returns
        -------
        op: OpT
            Synthesized operator given inputs to :py:meth:`~lazop.abc.arithmetic.Rule.__init__`.
        """
        raise NotImplementedError


class ScaleRule(Rule):
    r"""
    Scale an operator by a (possibly time-dependent) scalar :math:`\lambda`.

    Special Cases:
        \lambda = 1 (plain number)  => op
        op scalar                   => ComposedScalarOperator
        op = \mu L                  => (\lambda \mu) L
    Else:
        ScaledOperator(\lambda, op)
    """

    def __init__(self, op: lzt.OpT, cst: lzt.Number, left: bool = True):
        super().__init__()
        self._op = op
        self._cst = cst
        self._left = left  # scalar placed left of `op`?

    def op(self) -> lzt.OpT:
        if isinstance(self._cst, lzt.Number) and (self._cst == 1):
            return self._op

        cst = _lift(self._cst)
        if _is_scalar(self._op):
            ops = (cst, self._op) if self._left else (self._op, cst)
            return ChainRule(*ops).op()
        elif isinstance(self._op, ScaledOperator):
            ops = (cst, self._op._cst) if self._left else (self._op._cst, cst)
            return ScaledOperator(ChainRule(*ops).op(), self._op._op)
        else:
            return ScaledOperator(cst, self._op)


class AddRule(Rule):
    r"""
    Add two operators.

    Special Cases:
        scalar + scalar  => AddedScalarOperator
        scalar + op      => op + scalar * IdentityOperator(op.dim), for square `op`
        NullOperator + op  => op
    Else:
        AddedOperator(lhs, rhs), flattening nested sums.
    """

    def __init__(self, lhs: lzt.OpT, rhs: lzt.OpT):
        super().__init__()
        self._lhs = _lift(lhs)
        self._rhs = _lift(rhs)

    def op(self) -> lzt.OpT:
        from lazop.operator.basic import IdentityOperator, NullOperator
        from lazop.operator.scalar import AddedScalarOperator

        lhs, rhs = self._lhs, self._rhs
        if _is_scalar(lhs) and _is_scalar(rhs):
            ops = [*self._flatten(lhs, AddedScalarOperator), *self._flatten(rhs, AddedScalarOperator)]
            return AddedScalarOperator(*ops)
        elif _is_scalar(lhs) or _is_scalar(rhs):
            L = rhs if _is_scalar(lhs) else lhs
            if not L.issquare():
                msg = f"Adding a scalar to a {L.shape} operator requires it to be square."
                raise lze.ShapeMismatchError(msg)
            if _is_scalar(lhs):
                lhs = ScaleRule(op=IdentityOperator(L.dim), cst=lhs).op()
            else:
                rhs = ScaleRule(op=IdentityOperator(L.dim), cst=rhs).op()

        lzu.infer_sum_shape(lhs.shape, rhs.shape)
        if isinstance(lhs, NullOperator):
            return rhs
        elif isinstance(rhs, NullOperator):
            return lhs
        ops = [*self._flatten(lhs, AddedOperator), *self._flatten(rhs, AddedOperator)]
        return AddedOperator(*ops)

    @staticmethod
    def _flatten(op, klass) -> tuple:
        return op._ops if isinstance(op, klass) else (op,)


class ChainRule(Rule):
    r"""
    Compose two operators: ``lhs * rhs`` evaluates ``lhs(rhs(x))``.

    Special Cases:
        scalar * scalar       => ComposedScalarOperator
        scalar * op           => ScaledOperator
        IdentityOperator * op => op
    Else:
        ComposedOperator(lhs, rhs), flattening nested compositions.
    """

    def __init__(self, lhs: lzt.OpT, rhs: lzt.OpT):
        super().__init__()
        self._lhs = _lift(lhs)
        self._rhs = _lift(rhs)

    def op(self) -> lzt.OpT:
        from lazop.operator.basic import IdentityOperator
        from lazop.operator.scalar import ComposedScalarOperator

        lhs, rhs = self._lhs, self._rhs
        if _is_scalar(lhs) and _is_scalar(rhs):
            ops = [*self._flatten(lhs, ComposedScalarOperator), *self._flatten(rhs, ComposedScalarOperator)]
            return ComposedScalarOperator(*ops)
        elif _is_scalar(lhs):
            return ScaleRule(op=rhs, cst=lhs).op()
        elif _is_scalar(rhs):
            return ScaleRule(op=lhs, cst=rhs, left=False).op()

        lzu.infer_composition_shape(lhs.shape, rhs.shape)
        if isinstance(lhs, IdentityOperator):
            return rhs
        elif isinstance(rhs, IdentityOperator):
            return lhs
        ops = [*self._flatten(lhs, ComposedOperator), *self._flatten(rhs, ComposedOperator)]
        return ComposedOperator(*ops)

    @staticmethod
    def _flatten(op, klass) -> tuple:
        return op._ops if isinstance(op, klass) else (op,)


class PowerRule(Rule):
    r"""
    Special Cases:
        k = 0  => IdentityOperator
        k = 1  => op
    Else:
        op * op * ... * op
    """

    def __init__(self, op: lzt.OpT, k: lzt.Integer):
        super().__init__()
        self._op = op
        self._k = int(k)

    def op(self) -> lzt.OpT:
        from lazop.operator.basic import IdentityOperator
        from lazop.operator.scalar import ScalarOperator

        if not self._op.issquare():
            raise lze.UnsquareError(f"Exponentiation of a {self._op.shape} operator forbidden.")
        if self._k == 0:
            return ScalarOperator(1) if _is_scalar(self._op) else IdentityOperator(self._op.dim)

        op = self._op
        for _ in range(self._k - 1):
            op = ChainRule(lhs=op, rhs=self._op).op()
        return op


class AdjointRule(Rule):
    r"""
    Special Cases:
        (L^H)^H              => L
        structural adjoint   => leaf-specific form (scalars, identity, function operators)
    Else:
        AdjointOperator(L)
    """

    def __init__(self, op: lzt.OpT):
        super().__init__()
        self._op = op

    def op(self) -> lzt.OpT:
        op = self._op
        if isinstance(op, AdjointOperator):
            return op._op
        if not op.has_adjoint():
            raise lze.capability_missing(op, "adjoint")
        if (A := op._adjoint()) is not None:
            return A
        return AdjointOperator(op)


class TransposeRule(Rule):
    r"""
    Special Cases:
        (L^T)^T              => L
        structural transpose => leaf-specific form
    Else:
        TransposedOperator(L)
    """

    def __init__(self, op: lzt.OpT):
        super().__init__()
        self._op = op

    def op(self) -> lzt.OpT:
        op = self._op
        if isinstance(op, TransposedOperator):
            return op._op
        if not op.has_adjoint():
            raise lze.capability_missing(op, "transpose")
        if (A := op._transpose()) is not None:
            return A
        return TransposedOperator(op)


class InvertRule(Rule):
    r"""
    Special Cases:
        scalar          => InvertedScalarOperator (or the original scalar if already inverted)
        (L^{-1})^{-1}   => L
        structural inverse => leaf-specific form (identity, function operators)
    Else:
        InvertedOperator(L)
    """

    def __init__(self, op: lzt.OpT):
        super().__init__()
        self._op = op

    def op(self) -> lzt.OpT:
        from lazop.operator.scalar import InvertedScalarOperator

        op = self._op
        if _is_scalar(op):
            if isinstance(op, InvertedScalarOperator):
                return op._op
            return InvertedScalarOperator(op)
        elif isinstance(op, InvertedOperator):
            return op._op
        elif (A := op._inverse()) is not None:
            return A
        else:
            return InvertedOperator(op)


# Combinators -----------------------------------------------------------------
class ScaledOperator(lza.Operator):
    r"""
    Lazy scaling :math:`\lambda L`, with :math:`\lambda` a scalar operator.
    """

    def __init__(self, cst: lzt.ScalarOpT, op: lzt.OpT):
        super().__init__()
        self._cst = cst
        self._op = op

    @property
    def shape(self) -> lzt.OpShape:
        return self._op.shape

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self._cst.dtype, self._op.dtype)

    def _children(self) -> tuple:
        return (self._cst, self._op)

    def _set_children(self, ops):
        self._cst, self._op = ops

    def islinear(self) -> bool:
        return self._op.islinear()

    def has_adjoint(self) -> bool:
        return self._op.has_adjoint()

    def has_mul(self) -> bool:
        return self._op.has_mul()

    def has_mul_inplace(self) -> bool:
        return self._op.has_mul_inplace()

    def has_ldiv(self) -> bool:
        return self._op.has_ldiv() and (not self._cst.iszero())

    def has_ldiv_inplace(self) -> bool:
        return self._op.has_ldiv_inplace() and (not self._cst.iszero())

    def issquare(self) -> bool:
        return self._op.issquare()

    def iszero(self) -> bool:
        return self._cst.iszero() or self._op.iszero()

    def _singular(self) -> bool:
        return self._cst.iszero() or self._op._singular()

    def _square_members(self):
        return self._op._square_members()

    def _apply(self, arr, trans):
        return self._cst._value(trans) * self._op._apply(arr, trans)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._op._mul(out, arr, trans, alpha * self._cst._value(trans), beta)

    def _solve(self, arr, trans):
        return self._op._solve(arr, trans) / self._cst._value(trans)

    def _ldiv(self, out, arr, trans):
        self._op._ldiv(out, arr, trans)
        out /= self._cst._value(trans)

    def _ldiv_inplace(self, arr, trans):
        self._op._ldiv_inplace(arr, trans)
        arr /= self._cst._value(trans)

    def _expr(self) -> tuple:
        return ("scale", self._op, self._cst)


class AddedOperator(lza.Operator):
    r"""
    Lazy sum :math:`L_{1} + \cdots + L_{k}` of identically-shaped operators.

    Sums are solved by materializing them: a :py:class:`~lazop.info.warning.DenseWarning` is issued in that case.
    """

    def __init__(self, *ops: lzt.OpT):
        super().__init__()
        self._ops = tuple(ops)

    @property
    def shape(self) -> lzt.OpShape:
        return self._ops[0].shape

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(*[op.dtype for op in self._ops])

    def _children(self) -> tuple:
        return self._ops

    def _set_children(self, ops):
        self._ops = tuple(ops)

    def islinear(self) -> bool:
        return all(op.islinear() for op in self._ops)

    def has_adjoint(self) -> bool:
        return all(op.has_adjoint() for op in self._ops)

    def has_mul(self) -> bool:
        return all(op.has_mul() for op in self._ops)

    def has_mul_inplace(self) -> bool:
        return all(op.has_mul_inplace() for op in self._ops)

    def has_ldiv(self) -> bool:
        return self.issquare() and self.islinear() and self.has_mul() and (not self.iszero())

    def iszero(self) -> bool:
        return all(op.iszero() for op in self._ops)

    def _apply(self, arr, trans):
        out = self._ops[0]._apply(arr, trans)
        for op in self._ops[1:]:
            out = out + op._apply(arr, trans)
        return out

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        head, *tail = self._ops
        head._mul(out, arr, trans, alpha, beta)
        for op in tail:
            op._mul(out, arr, trans, alpha, 1)

    def _solve(self, arr, trans):
        msg = f"{self!r}: solving a sum materializes it."
        warnings.warn(msg, lzw.DenseWarning)

        xp = lzu.get_array_module(arr)
        A = self.asarray(xp=xp, dtype=np.result_type(self.dtype, arr.dtype))
        try:
            return lzl.solve(A, arr, trans)
        except lze.NotInvertibleError as e:
            raise lze.NotInvertibleError(f"{self!r}: sum not invertible.") from e

    def _expr(self) -> tuple:
        return ("add", *self._ops)


class ComposedOperator(lza.Operator):
    r"""
    Lazy composition :math:`L_{1} L_{2} \cdots L_{k}`, evaluated right-to-left.

    In-place evaluation streams intermediate results through one cached buffer per interface between consecutive
    operators.
    """

    def __init__(self, *ops: lzt.OpT):
        super().__init__()
        self._ops = tuple(ops)

    @property
    def shape(self) -> lzt.OpShape:
        return (self._ops[0].codim, self._ops[-1].dim)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(*[op.dtype for op in self._ops])

    def _children(self) -> tuple:
        return self._ops

    def _set_children(self, ops):
        self._ops = tuple(ops)

    def islinear(self) -> bool:
        return all(op.islinear() for op in self._ops)

    def has_adjoint(self) -> bool:
        return all(op.has_adjoint() for op in self._ops)

    def has_mul(self) -> bool:
        return all(op.has_mul() for op in self._ops)

    def has_mul_inplace(self) -> bool:
        return all(op.has_mul_inplace() for op in self._ops)

    def has_ldiv(self) -> bool:
        return all(op.has_ldiv() for op in self._ops)

    def has_ldiv_inplace(self) -> bool:
        return all(op.has_ldiv_inplace() for op in self._ops)

    def iszero(self) -> bool:
        return any(op.iszero() for op in self._ops)

    def _singular(self) -> bool:
        if self.iszero():
            return True
        return all(op.issquare() for op in self._ops) and any(op._singular() for op in self._ops)

    def _square_members(self):
        return self._ops

    def _apply(self, arr, trans):
        ops = self._ops if trans.transpose else self._ops[::-1]
        for op in ops:
            arr = op._apply(arr, trans)
        return arr

    def _solve(self, arr, trans):
        ops = self._ops[::-1] if trans.transpose else self._ops
        for op in ops:
            arr = op._solve(arr, trans)
        return arr

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._pipeline(
            out,
            arr,
            forward=trans.transpose,
            stage=lambda op, dst, src: op._mul(dst, src, trans, 1, 0),
            last=lambda op, dst, src: op._mul(dst, src, trans, alpha, beta),
        )

    def _ldiv(self, out, arr, trans):
        self._pipeline(
            out,
            arr,
            forward=not trans.transpose,
            stage=lambda op, dst, src: op._ldiv(dst, src, trans),
            last=lambda op, dst, src: op._ldiv(dst, src, trans),
        )

    def _ldiv_inplace(self, arr, trans):
        ops = self._ops[::-1] if trans.transpose else self._ops
        for op in ops:
            op._ldiv_inplace(arr, trans)

    def _pipeline(self, out, arr, forward: bool, stage, last):
        # buf[i] sits between ops[i] and ops[i + 1], with shape (ops[i + 1].codim, ...).
        buf = self._scratch(arr)
        k = len(self._ops)
        idx = range(k) if forward else range(k - 1, -1, -1)
        src = arr
        for n, i in enumerate(idx):
            op = self._ops[i]
            if n == k - 1:
                last(op, out, src)
            else:
                dst = buf[i] if forward else buf[i - 1]
                stage(op, dst, src)
                src = dst

    def _needs_cache(self) -> bool:
        return True

    def _cache_self(self, arr):
        batch = arr.shape[1:]
        return [self._alloc(arr, (op.codim, *batch)) for op in self._ops[1:]]

    def _cache_internals(self, arr):
        buf = self._scratch(arr)
        k = len(self._ops)
        for i, op in enumerate(self._ops):
            op.cache_operator(arr if (i == k - 1) else buf[i])

    def _expr(self) -> tuple:
        return ("compose", *self._ops)


class _TransOperator(lza.Operator):
    # Generic view of an operator through a Trans mode.
    _mode: lzl.Trans = lzl.Trans.N

    def __init__(self, op: lzt.OpT):
        super().__init__()
        self._op = op

    @property
    def shape(self) -> lzt.OpShape:
        return self._mode.dims(self._op.shape)

    @property
    def dtype(self) -> np.dtype:
        return self._op.dtype

    def _children(self) -> tuple:
        return (self._op,)

    def _set_children(self, ops):
        (self._op,) = ops

    def islinear(self) -> bool:
        return self._op.islinear()

    def has_adjoint(self) -> bool:
        return True

    def has_mul(self) -> bool:
        return self._op.has_mul()

    def has_mul_inplace(self) -> bool:
        return self._op.has_mul_inplace()

    def has_ldiv(self) -> bool:
        return self._op.has_ldiv()

    def has_ldiv_inplace(self) -> bool:
        return self._op.has_ldiv_inplace()

    def iszero(self) -> bool:
        return self._op.iszero()

    def _singular(self) -> bool:
        return self._op._singular()

    def _square_members(self):
        return self._op._square_members()

    def _apply(self, arr, trans):
        return self._op._apply(arr, self._mode.compose(trans))

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._op._mul(out, arr, self._mode.compose(trans), alpha, beta)

    def _solve(self, arr, trans):
        return self._op._solve(arr, self._mode.compose(trans))

    def _ldiv(self, out, arr, trans):
        self._op._ldiv(out, arr, self._mode.compose(trans))

    def _ldiv_inplace(self, arr, trans):
        self._op._ldiv_inplace(arr, self._mode.compose(trans))

    def _cache_internals(self, arr):
        proto = self._alloc(arr, (self._op.dim, *arr.shape[1:]))
        self._op.cache_operator(proto)


class AdjointOperator(_TransOperator):
    r"""
    Lazy adjoint :math:`L^{H}`.
    """

    _mode = lzl.Trans.C

    def _expr(self) -> tuple:
        return ("adjoint", self._op)


class TransposedOperator(_TransOperator):
    r"""
    Lazy transpose :math:`L^{T}`.
    """

    _mode = lzl.Trans.T

    def _expr(self) -> tuple:
        return ("transpose", self._op)


class InvertedOperator(lza.Operator):
    r"""
    Lazy inverse :math:`L^{-1}`: multiplication solves with :math:`L`, solving multiplies by :math:`L`.
    """

    def __init__(self, op: lzt.OpT):
        super().__init__()
        self._op = op

    @property
    def shape(self) -> lzt.OpShape:
        return tuple(self._op.shape[::-1])

    @property
    def dtype(self) -> np.dtype:
        return self._op.dtype

    def _children(self) -> tuple:
        return (self._op,)

    def _set_children(self, ops):
        (self._op,) = ops

    def islinear(self) -> bool:
        return self._op.islinear()

    def has_adjoint(self) -> bool:
        return self._op.has_adjoint()

    def has_mul(self) -> bool:
        return self._op.has_ldiv()

    def has_mul_inplace(self) -> bool:
        return self._op.has_ldiv_inplace()

    def has_ldiv(self) -> bool:
        return self._op.has_mul()

    def has_ldiv_inplace(self) -> bool:
        return self._op.has_mul_inplace()

    def _require(self, predicate: str, what: str):
        # multiplying by the inverse solves with the operand.
        if predicate.startswith("has_mul") and (not getattr(self, predicate)()) and self._op._singular():
            raise lze.NotInvertibleError(f"{self!r}: operand is singular, {what} impossible.")
        super()._require(predicate, what)

    def _apply(self, arr, trans):
        return self._op._solve(arr, trans)

    def _solve(self, arr, trans):
        return self._op._apply(arr, trans)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        if (alpha == 1) and (beta == 0):
            self._op._ldiv(out, arr, trans)
        else:
            tmp = self._scratch(arr)["T" if trans.transpose else "N"]
            self._op._ldiv(tmp, arr, trans)
            lzl.axpby(out, tmp, alpha, beta)

    def _ldiv(self, out, arr, trans):
        self._op._mul(out, arr, trans, 1, 0)

    def _ldiv_inplace(self, arr, trans):
        tmp = self._scratch(arr)["N"]
        tmp[...] = arr
        self._op._mul(arr, tmp, trans, 1, 0)

    def _needs_cache(self) -> bool:
        return True

    def _cache_self(self, arr):
        batch = arr.shape[1:]
        buf = dict(N=self._alloc(arr, (self.codim, *batch)))
        buf["T"] = buf["N"] if self.issquare() else self._alloc(arr, (self.dim, *batch))
        return buf

    def _cache_internals(self, arr):
        self._op.cache_operator(self._scratch(arr)["N"])

    def _expr(self) -> tuple:
        return ("inv", self._op)
