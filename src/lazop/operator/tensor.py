r"""
Lazy Kronecker products.

Given :math:`A \in \mathbb{C}^{M_{o} \times N_{o}}` (outer) and :math:`B \in \mathbb{C}^{M_{i} \times N_{i}}` (inner),
:math:`(A \otimes B) u` is evaluated by viewing :math:`u` as a row-major :math:`(N_{o}, N_{i})` matrix :math:`U` and
computing

.. math::

   (A \otimes B) u = \text{vec}\left( A (B U^{T})^{T} \right),

i.e. `inner` is applied along the fast axis, the intermediate result is permuted, then `outer` is applied.  Batched
inputs :math:`(N_{o} N_{i}, K)` carry the batch dimension through both stages.
"""

import functools

import numpy as np

import lazop.abc.arithmetic as lzar
import lazop.abc.operator as lza
import lazop.info.deps as lzd
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.math.linalg as lzl
import lazop.runtime as lzrt
import lazop.util as lzu
from lazop.operator.basic import IdentityOperator

__all__ = [
    "TensorProductOperator",
    "kron",
]


class TensorProductOperator(lza.Operator):
    r"""
    Lazy tensor product :math:`A \otimes B`.

    Parameters
    ----------
    outer: OpT, NDArray, SparseArray
        (M_o, N_o) operator :math:`A`.
    inner: OpT, NDArray, SparseArray
        (M_i, N_i) operator :math:`B`.

    Notes
    -----
    * Array operands are wrapped into :py:class:`~lazop.operator.MatrixOperator`.
    * In-place evaluation relies on 7 scratch buffers allocated by :py:meth:`~lazop.abc.Operator.cache_operator`:

      - ``c1`` (M_i, N_o K): inner-stage output;
      - ``c2`` (N_o, M_i K): permuted inner-stage output, fed to `outer`;
      - ``c3`` (N_i, N_o K): permuted input, fed to `inner`;
      - ``c4`` (max(M_o M_i, N_o N_i) K,): accumulator for `outer` operators without native (alpha, beta) support;
      - ``c5, c6, c7``: counterparts of ``c1, c2, c3`` for solves and transposed products, whose stages see
        (N_i, M_o K), (M_o, N_i K) and (M_i, M_o K) arrays.  They alias ``c1, c2, c3`` if both operands are square.

    * Tensor products cannot be resized.
    """

    def __init__(self, outer, inner):
        super().__init__()
        outer, inner = [self._as_operator(op) for op in (outer, inner)]
        self._shape = lzu.infer_kron_shape(outer.shape, inner.shape)
        self._outer = outer
        self._inner = inner

    @staticmethod
    def _as_operator(op) -> lzt.OpT:
        from lazop.operator.matrix import MatrixOperator

        if not isinstance(op, lza.Operator):
            op = MatrixOperator(op)
        if isinstance(op, lza.ScalarOperatorBase):
            raise lze.ShapeMismatchError("Tensor products of size-agnostic operators are undefined.")
        return op

    @property
    def shape(self) -> lzt.OpShape:
        return lzu.infer_kron_shape(self._outer.shape, self._inner.shape)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self._outer.dtype, self._inner.dtype)

    def _children(self) -> tuple:
        return (self._outer, self._inner)

    def _set_children(self, ops):
        self._outer, self._inner = ops

    def islinear(self) -> bool:
        return self._outer.islinear() and self._inner.islinear()

    def has_adjoint(self) -> bool:
        return self._outer.has_adjoint() and self._inner.has_adjoint()

    def has_mul(self) -> bool:
        return self._outer.has_mul() and self._inner.has_mul()

    def has_mul_inplace(self) -> bool:
        return self._outer.has_mul_inplace() and self._inner.has_mul_inplace()

    def has_ldiv(self) -> bool:
        return self._outer.has_ldiv() and self._inner.has_ldiv()

    def has_ldiv_inplace(self) -> bool:
        return self._outer.has_ldiv_inplace() and self._inner.has_ldiv_inplace()

    def iszero(self) -> bool:
        return self._outer.iszero() or self._inner.iszero()

    def _singular(self) -> bool:
        ops = (self._outer, self._inner)
        if self.iszero():
            return True
        return all(op.issquare() for op in ops) and any(op._singular() for op in ops)

    def _square_members(self):
        return (self, self._outer, self._inner)

    def conj(self) -> lzt.OpT:
        return TensorProductOperator(self._outer.conj(), self._inner.conj())

    def resize(self, n: lzt.Integer) -> lzt.OpT:
        raise lze.capability_missing(self, "resize")

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        if xp is None:
            xp = lzd.NDArrayInfo.default().module()
        if dtype is None:
            dtype = np.result_type(self.dtype, lzrt.getPrecision().value)
        if xp is lzd.NDArrayInfo.DASK.module():
            return super().asarray(xp=xp, dtype=dtype)
        A = self._outer.asarray(xp=xp, dtype=dtype)
        B = self._inner.asarray(xp=xp, dtype=dtype)
        return xp.kron(A, B)

    # Internal Helpers --------------------------------------------------------
    def _dims(self, trans: lzl.Trans, solve: bool) -> tuple:
        # (a_in, a_out, b_in, b_out): outer/inner stage input/output sizes.
        (mo, no), (mi, ni) = self._outer.shape, self._inner.shape
        if solve ^ trans.transpose:
            return mo, no, mi, ni
        else:
            return no, mo, ni, mi

    def _apply(self, arr, trans):
        return self._lazy(arr, trans, solve=False)

    def _solve(self, arr, trans):
        return self._lazy(arr, trans, solve=True)

    def _lazy(self, arr, trans, solve: bool):
        # Out-of-place evaluation: only reshape/transpose primitives are used, so that DASK inputs stay lazy.
        a_in, a_out, b_in, b_out = self._dims(trans, solve)
        f = "_solve" if solve else "_apply"

        X = arr.reshape(a_in, b_in, -1)
        k = X.shape[2]
        C = getattr(self._inner, f)(X.transpose(1, 0, 2).reshape(b_in, a_in * k), trans)
        C = C.reshape(b_out, a_in, k).transpose(1, 0, 2).reshape(a_in, b_out * k)
        V = getattr(self._outer, f)(C, trans)
        return V.reshape(a_out * b_out, *arr.shape[1:])

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._kernel(out, arr, trans, False, alpha, beta)

    def _ldiv(self, out, arr, trans):
        self._kernel(out, arr, trans, True)

    def _kernel(self, out, arr, trans, solve: bool, alpha=1, beta=0):
        if not out.flags.c_contiguous:
            # reshaped views of `out` would be copies: stage the result in C order.
            stage = out.copy(order="C")
            self._kernel(stage, arr, trans, solve, alpha, beta)
            out[...] = stage
            return

        a_in, a_out, b_in, b_out = self._dims(trans, solve)
        c = self._scratch(arr)
        c1, c2, c3 = (c[5], c[6], c[7]) if (solve ^ trans.transpose) else (c[1], c[2], c[3])

        k = int(np.prod(arr.shape[1:]))
        if k == 1:
            # transposed views replace both permutation passes
            U = arr.reshape(a_in, b_in)
            self._inner_stage(c1, U.T, trans, solve)
            self._outer_stage(self._outer, out.reshape(a_out, b_out), c1.T, trans, solve, alpha, beta, c[4])
        else:
            c3.reshape(b_in, a_in, k)[...] = arr.reshape(a_in, b_in, k).transpose(1, 0, 2)
            self._inner_stage(c1, c3, trans, solve)
            c2.reshape(a_in, b_out, k)[...] = c1.reshape(b_out, a_in, k).transpose(1, 0, 2)
            self._outer_stage(self._outer, out.reshape(a_out, b_out * k), c2, trans, solve, alpha, beta, c[4])

    def _ldiv_inplace(self, arr, trans):
        if not arr.flags.c_contiguous:
            stage = arr.copy(order="C")
            self._ldiv_inplace(stage, trans)
            arr[...] = stage
            return

        # square operands: c3 serves as permutation buffer.
        (n_o, _), (n_i, _) = self._outer.shape, self._inner.shape
        c3 = self._scratch(arr)[3]
        k = int(np.prod(arr.shape[1:]))

        c3.reshape(n_i, n_o, k)[...] = arr.reshape(n_o, n_i, k).transpose(1, 0, 2)
        self._inner._ldiv_inplace(c3, trans)
        arr.reshape(n_o, n_i, k)[...] = c3.reshape(n_i, n_o, k).transpose(1, 0, 2)
        self._outer._ldiv_inplace(arr.reshape(n_o, n_i * k), trans)

    def _inner_stage(self, dst, src, trans, solve: bool):
        if solve:
            self._inner._ldiv(dst, src, trans)
        else:
            self._inner._mul(dst, src, trans, 1, 0)

    def _outer_stage(self, op, dst, src, trans, solve: bool, alpha, beta, acc):
        if solve:
            if isinstance(op, IdentityOperator):
                dst[...] = src
            elif isinstance(op, lzar.ScaledOperator):
                self._outer_stage(op._op, dst, src, trans, solve, alpha, beta, acc)
                dst /= op._cst._value(trans)
            else:
                op._ldiv(dst, src, trans)
        else:
            if isinstance(op, IdentityOperator):
                lzl.axpby(dst, src, alpha, beta)
            elif isinstance(op, lzar.ScaledOperator):
                alpha = alpha * op._cst._value(trans)
                self._outer_stage(op._op, dst, src, trans, solve, alpha, beta, acc)
            elif op._native_axpby or ((alpha == 1) and (beta == 0)):
                op._mul(dst, src, trans, alpha, beta)
            else:
                tmp = acc[: dst.size].reshape(dst.shape)
                op._mul(tmp, src, trans, 1, 0)
                lzl.axpby(dst, tmp, alpha, beta)

    def _needs_acc(self) -> bool:
        op = self._outer
        while isinstance(op, lzar.ScaledOperator):
            op = op._op
        return not (isinstance(op, IdentityOperator) or op._native_axpby)

    def _needs_cache(self) -> bool:
        return True

    def _cache_self(self, arr):
        (mo, no), (mi, ni) = self._outer.shape, self._inner.shape
        k = int(np.prod(arr.shape[1:]))

        c = dict()
        c[1] = self._alloc(arr, (mi, no * k))
        c[2] = self._alloc(arr, (no, mi * k))
        c[3] = self._alloc(arr, (ni, no * k))
        c[4] = self._alloc(arr, (max(mo * mi, no * ni) * k,)) if self._needs_acc() else None
        if self._outer.issquare() and self._inner.issquare():
            c[5], c[6], c[7] = c[1], c[2], c[3]
        else:
            c[5] = self._alloc(arr, (ni, mo * k))
            c[6] = self._alloc(arr, (mo, ni * k))
            c[7] = self._alloc(arr, (mi, mo * k))
        return c

    def _cache_internals(self, arr):
        # Operands see (N, Q) inputs: only Q matters to their cache.
        (mo, no), (mi, ni) = self._outer.shape, self._inner.shape
        k = int(np.prod(arr.shape[1:]))

        self._inner.cache_operator(self._alloc(arr, (ni, no * k)))
        self._outer.cache_operator(self._alloc(arr, (no, mi * k)))
        if not (self._outer.issquare() and self._inner.issquare()):
            self._inner.cache_operator(self._alloc(arr, (ni, mo * k)))
            self._outer.cache_operator(self._alloc(arr, (no, ni * k)))

    def _expr(self) -> tuple:
        return ("kron", self._outer, self._inner)


def _kron2(outer: lzt.OpT, inner: lzt.OpT) -> lzt.OpT:
    if isinstance(outer, IdentityOperator) and isinstance(inner, IdentityOperator):
        return IdentityOperator(outer.dim * inner.dim)
    return TensorProductOperator(outer, inner)


def kron(*ops) -> lzt.OpT:
    r"""
    Lazy tensor product :math:`A_{1} \otimes \cdots \otimes A_{k}`.

    Parameters
    ----------
    \*ops: OpT, NDArray, SparseArray
        Operands.  Arrays are wrapped into :py:class:`~lazop.operator.MatrixOperator`.

    Returns
    -------
    op: OpT
        Product reduced pairwise from the left.  A single operand is returned as-is, and products of identities are
        identities.

    Example
    -------
    .. code-block:: python3

       import numpy as np
       from lazop.operator import kron

       A, B = np.random.randn(3, 4), np.random.randn(5, 2)
       u = np.random.randn(4 * 2)
       np.allclose(kron(A, B) @ u, np.kron(A, B) @ u)  # True
    """
    if len(ops) == 0:
        raise ValueError("kron: expected at least one operand.")
    ops = [TensorProductOperator._as_operator(op) for op in ops]
    return functools.reduce(_kron2, ops)
