import copy
import warnings

import numpy as np
import scipy.sparse as sp

import lazop.abc.operator as lza
import lazop.info.config as lzc
import lazop.info.deps as lzd
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.info.warning as lzw
import lazop.math.linalg as lzl
import lazop.util as lzu

__all__ = [
    "MatrixOperator",
    "DiagonalOperator",
    "InvertibleOperator",
    "AffineOperator",
    "AddVector",
    "factorize",
    "lu",
    "cholesky",
    "qr",
]

_log = lzc.get_logger("operator")


def _as_operator(A) -> lzt.OpT:
    return A if isinstance(A, lza.Operator) else MatrixOperator(A)


class MatrixOperator(lza.Operator):
    r"""
    Operator backed by an explicit matrix payload :math:`A`.

    Parameters
    ----------
    A: NDArray, SparseArray, Factorization
        (M, N) payload: a dense NUMPY/CUPY/DASK array, a sparse SCIPY/CUPY array, or a factorization object (see
        :py:func:`~lazop.operator.factorize`).  Array-likes are converted to NUMPY arrays.
    update_func: callable
        Coefficient update ``(A, u, p, t) -> A_new``.
    update_func_inplace: callable
        In-place coefficient update ``(A, u, p, t) -> None``.  If not provided,
        :py:meth:`~lazop.abc.Operator.update_coefficients_inplace` re-binds the payload to the output of
        `update_func`.

    Notes
    -----
    Capabilities follow the payload:

    * dense payloads multiply in place and solve out-of-place (least-squares if non-square);
    * diagonal sparse payloads and factorizations also solve in place;
    * DASK payloads only evaluate out-of-place;
    * factorizations do not multiply.

    Matrix payloads cannot be resized.
    """

    def __init__(
        self,
        A,
        update_func: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
        update_func_inplace: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
    ):
        super().__init__()
        self._A = lzl.as_payload(A)
        self._update_func = update_func
        self._update_func_inplace = update_func_inplace

    @property
    def shape(self) -> lzt.OpShape:
        return tuple(self._A.shape)

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self._A.dtype)

    def isconstant(self) -> bool:
        return (self._update_func is lza.DEFAULT_UPDATE_FUNC) and (
            self._update_func_inplace is lza.DEFAULT_UPDATE_FUNC
        )

    def has_adjoint(self) -> bool:
        return True

    def has_mul(self) -> bool:
        return lzl.has_mul(self._A)

    def has_mul_inplace(self) -> bool:
        return lzl.has_mul_inplace(self._A)

    def has_ldiv(self) -> bool:
        return lzl.has_solve(self._A)

    def has_ldiv_inplace(self) -> bool:
        return lzl.has_solve_inplace(self._A)

    def iszero(self) -> bool:
        return lzl.is_zero(self._A)

    def _singular(self) -> bool:
        return lzl.is_singular(self._A)

    def _apply(self, arr, trans):
        return lzl.matmul(self._A, arr, trans)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        lzl.matmul_(out, self._A, arr, trans, alpha, beta)

    def _solve(self, arr, trans):
        return lzl.solve(self._A, arr, trans)

    def _ldiv(self, out, arr, trans):
        lzl.solve_(out, self._A, arr, trans)

    def _ldiv_inplace(self, arr, trans):
        lzl.solve_inplace(self._A, arr, trans)

    def _cache_internals(self, arr):
        if np.result_type(self.dtype, arr.dtype) != arr.dtype:
            msg = f"{self!r}: {self.dtype} payload promotes {arr.dtype} inputs."
            warnings.warn(msg, lzw.PrecisionWarning)

    def update_coefficients(self, u, p, t) -> lzt.OpT:
        if self.isconstant():
            return self
        op = copy.copy(self)
        op._cache = dict(self._cache)
        op._A = self._update_func(self._A, u, p, t)
        return op

    def update_coefficients_inplace(self, u, p, t) -> lzt.OpT:
        if self._update_func_inplace is not lza.DEFAULT_UPDATE_FUNC:
            self._update_func_inplace(self._A, u, p, t)
        else:
            self._A = self._update_func(self._A, u, p, t)
        return self

    def conj(self) -> lzt.OpT:
        if self.isconstant():
            if self.dtype.kind != "c":
                return self
            return MatrixOperator(lzl.conj(self._A))

        f, f_ = self._update_func, self._update_func_inplace
        update_func = update_func_inplace = lza.DEFAULT_UPDATE_FUNC
        if f is not lza.DEFAULT_UPDATE_FUNC:

            def update_func(A, u, p, t):
                return lzl.conj(f(lzl.conj(A), u, p, t))

        if f_ is not lza.DEFAULT_UPDATE_FUNC:

            def update_func_inplace(A, u, p, t):
                xp = lzu.get_array_module(A)
                xp.conjugate(A, out=A)
                f_(A, u, p, t)
                xp.conjugate(A, out=A)

        return MatrixOperator(
            lzl.conj(self._A),
            update_func=update_func,
            update_func_inplace=update_func_inplace,
        )

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        return lzl.to_dense(self._A, xp=xp, dtype=dtype)


def _dia(diag):
    # (N, N) diagonal sparse array with `diag` on its main diagonal.
    ndi = lzd.NDArrayInfo.from_obj(diag)
    N = diag.shape[0]
    if ndi == lzd.NDArrayInfo.CUPY:
        xp = ndi.module()
        spmod = lzd.SparseArrayInfo.CUPY_SPARSE.module()
        return spmod.dia_matrix((diag.reshape(1, -1), xp.zeros(1, dtype=np.int32)), shape=(N, N))
    else:
        return sp.dia_array((diag.reshape(1, -1), np.zeros(1, dtype=np.int32)), shape=(N, N))


def DiagonalOperator(
    diag: lzt.NDArray,
    update_func: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
    update_func_inplace: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
) -> MatrixOperator:
    r"""
    Diagonal operator :math:`\text{diag}(d)`.

    Parameters
    ----------
    diag: NDArray
        (N,) diagonal.
    update_func: callable
        Diagonal update ``(d, u, p, t) -> d_new``.
    update_func_inplace: callable
        In-place diagonal update ``(d, u, p, t) -> None``.

    Returns
    -------
    op: MatrixOperator
        (N, N) operator holding a diagonal sparse payload.  Diagonal operators solve in place.

    Example
    -------
    .. code-block:: python3

       import numpy as np
       from lazop.operator import DiagonalOperator

       D = DiagonalOperator(np.r_[1, 2, 3])
       D @ np.ones(3)  # [1, 2, 3]
    """
    try:
        ndi = lzd.NDArrayInfo.from_obj(diag)
    except ValueError:
        diag = np.asarray(diag)
        ndi = lzd.NDArrayInfo.NUMPY
    if ndi == lzd.NDArrayInfo.DASK:
        lzw.warn_dask_perf("DASK diagonals are computed: sparse payloads are NUMPY/CUPY only.")
        diag = lzu.compute(diag)
    if diag.ndim != 1:
        raise lze.ShapeMismatchError(f"DiagonalOperator: expected a (N,) diagonal, got {diag.shape}.")

    kwargs = dict()
    if update_func is not lza.DEFAULT_UPDATE_FUNC:

        def _update_func(A, u, p, t):
            d = update_func(lzl.diagonal(A), u, p, t)
            return _dia(d)

        kwargs.update(update_func=_update_func)
    if update_func_inplace is not lza.DEFAULT_UPDATE_FUNC:

        def _update_func_inplace(A, u, p, t):
            update_func_inplace(lzl.diagonal(A), u, p, t)

        kwargs.update(update_func_inplace=_update_func_inplace)

    return MatrixOperator(_dia(diag), **kwargs)


class InvertibleOperator(lza.Operator):
    r"""
    Operator multiplied through :math:`L` and solved through a factorization :math:`F` of :math:`L`.

    Parameters
    ----------
    L: OpT, NDArray, SparseArray
        (M, N) operator.
    F: OpT, Factorization
        (M, N) operator supporting solves.
    """

    def __init__(self, L, F):
        super().__init__()
        L, F = _as_operator(L), _as_operator(F)
        if not (F.has_ldiv() or F.has_ldiv_inplace()):
            raise lze.NotInvertibleError(f"{type(self).__name__}: operand is not invertible.")
        lzu.infer_sum_shape(L.shape, F.shape)
        self._op = L
        self._F = F

    @property
    def shape(self) -> lzt.OpShape:
        return self._op.shape

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self._op.dtype, self._F.dtype)

    def _children(self) -> tuple:
        return (self._op, self._F)

    def _set_children(self, ops):
        self._op, self._F = ops

    def islinear(self) -> bool:
        return self._op.islinear()

    def has_adjoint(self) -> bool:
        return self._op.has_adjoint() and self._F.has_adjoint()

    def has_mul(self) -> bool:
        return self._op.has_mul()

    def has_mul_inplace(self) -> bool:
        return self._op.has_mul_inplace()

    def has_ldiv(self) -> bool:
        return self._F.has_ldiv()

    def has_ldiv_inplace(self) -> bool:
        return self._F.has_ldiv_inplace()

    def iszero(self) -> bool:
        return self._op.iszero()

    def _apply(self, arr, trans):
        return self._op._apply(arr, trans)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._op._mul(out, arr, trans, alpha, beta)

    def _solve(self, arr, trans):
        return self._F._solve(arr, trans)

    def _ldiv(self, out, arr, trans):
        self._F._ldiv(out, arr, trans)

    def _ldiv_inplace(self, arr, trans):
        self._F._ldiv_inplace(arr, trans)

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        return self._op.asarray(xp=xp, dtype=dtype)

    def _expr(self) -> tuple:
        return ("invertible", self._op, self._F)


def factorize(L, kind: str = "auto") -> lzt.OpT:
    """
    Pre-compute a factorization of an operator for repeated solves.

    Parameters
    ----------
    L: OpT, NDArray, SparseArray
        (M, N) operator.
    kind: str
        Factorization to compute: ``lu``, ``cholesky``, ``qr`` or ``auto``.  (See
        :py:func:`lazop.math.linalg.factorize`.)

    Returns
    -------
    op: OpT
        Operator multiplying as `L`, and solving (in place) through the factorization.

    Notes
    -----
    * Tensor products are factorized operand-wise.
    * Identities, scalars, diagonal and already-factorized operators are returned unchanged.
    * Other matrix-free operators are materialized first: a :py:class:`~lazop.info.warning.DenseWarning` is issued.
    """
    from lazop.operator.basic import IdentityOperator
    from lazop.operator.tensor import TensorProductOperator

    L = _as_operator(L)
    if isinstance(L, TensorProductOperator):
        return TensorProductOperator(factorize(L._outer, kind), factorize(L._inner, kind))
    elif isinstance(L, (IdentityOperator, lza.ScalarOperatorBase, InvertibleOperator)):
        return L
    elif isinstance(L, MatrixOperator):
        F = lzl.factorize(L._A, kind)
        if F is L._A:
            return L
    else:
        msg = f"{L!r}: materialized for factorization."
        warnings.warn(msg, lzw.DenseWarning)
        F = lzl.factorize(L.asarray(), kind)

    _log.debug(f"{L!r}: factorized ({kind}).")
    return InvertibleOperator(L, MatrixOperator(F))


def lu(L) -> lzt.OpT:
    """LU-factorized operator (see :py:func:`~lazop.operator.factorize`)."""
    return factorize(L, kind="lu")


def cholesky(L) -> lzt.OpT:
    """Cholesky-factorized operator (see :py:func:`~lazop.operator.factorize`)."""
    return factorize(L, kind="cholesky")


def qr(L) -> lzt.OpT:
    """QR-factorized operator (see :py:func:`~lazop.operator.factorize`)."""
    return factorize(L, kind="qr")


class AffineOperator(lza.Operator):
    r"""
    Affine map :math:`u \to A u + B b`.

    Parameters
    ----------
    A: OpT, NDArray, SparseArray
        (M, N) operator.
    B: OpT, NDArray, SparseArray
        (M, K) operator.
    b: NDArray
        (K,) or (K, Q) coefficient.
    update_func: callable
        Coefficient update ``(b, u, p, t) -> b_new``.
    update_func_inplace: callable
        In-place coefficient update ``(b, u, p, t) -> None``.

    Notes
    -----
    * Affine operators are not linear: they have no adjoint and no matrix representation.
    * Solves compute :math:`A^{-1}(u - B b)`.
    * 1D `b` broadcast against (M, Q) inputs.
    """

    def __init__(
        self,
        A,
        B,
        b: lzt.NDArray,
        update_func: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
        update_func_inplace: lzt.UpdateFunc = lza.DEFAULT_UPDATE_FUNC,
    ):
        super().__init__()
        A, B = _as_operator(A), _as_operator(B)
        if A.codim != B.codim:
            raise lze.ShapeMismatchError(f"AffineOperator: A{A.shape} and B{B.shape} must have the same codim.")
        if b.shape[0] != B.dim:
            raise lze.shape_mismatch(self, f"({B.dim},) or ({B.dim}, Q)", b.shape)
        self._A = A
        self._B = B
        self._b = b
        self._update_func = update_func
        self._update_func_inplace = update_func_inplace
        self._Bb = B.apply(b)

    @property
    def shape(self) -> lzt.OpShape:
        return self._A.shape

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self._A.dtype, self._B.dtype, self._b.dtype)

    def _children(self) -> tuple:
        return (self._A, self._B)

    def _set_children(self, ops):
        self._A, self._B = ops

    def islinear(self) -> bool:
        return False

    def isconstant(self) -> bool:
        return (
            self._A.isconstant()
            and self._B.isconstant()
            and (self._update_func is lza.DEFAULT_UPDATE_FUNC)
            and (self._update_func_inplace is lza.DEFAULT_UPDATE_FUNC)
        )

    def has_adjoint(self) -> bool:
        return False

    def has_mul(self) -> bool:
        return self._A.has_mul() and self._B.has_mul()

    def has_mul_inplace(self) -> bool:
        return self._A.has_mul_inplace() and self._B.has_mul_inplace()

    def has_ldiv(self) -> bool:
        return self._A.has_ldiv() and self._B.has_mul()

    def has_ldiv_inplace(self) -> bool:
        return self._A.has_ldiv_inplace() and self._B.has_mul_inplace()

    def iszero(self) -> bool:
        return self._A.iszero() and (self._B.iszero() or lzl.is_zero(self._b))

    @staticmethod
    def _bcast(y, arr):
        return y[:, None] if (y.ndim == 1) and (arr.ndim == 2) else y

    def _apply(self, arr, trans):
        Bb = self._B._apply(self._b, trans)
        return self._A._apply(arr, trans) + self._bcast(Bb, arr)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._A._mul(out, arr, trans, alpha, beta)
        self._B._mul(self._Bb, self._b, trans, alpha, 0)
        out += self._bcast(self._Bb, out)

    def _solve(self, arr, trans):
        Bb = self._B._apply(self._b, trans)
        return self._A._solve(arr - self._bcast(Bb, arr), trans)

    def _ldiv(self, out, arr, trans):
        out[...] = arr
        self._ldiv_inplace(out, trans)

    def _ldiv_inplace(self, arr, trans):
        self._B._mul(self._Bb, self._b, trans, 1, 0)
        arr -= self._bcast(self._Bb, arr)
        self._A._ldiv_inplace(arr, trans)

    def _cache_internals(self, arr):
        self._A.cache_operator(arr)
        self._B.cache_operator(self._b)

    def update_coefficients(self, u, p, t) -> lzt.OpT:
        if self.isconstant():
            return self
        op = copy.copy(self)
        op._cache = dict(self._cache)
        op._A = self._A.update_coefficients(u, p, t)
        op._B = self._B.update_coefficients(u, p, t)
        op._b = self._update_func(self._b, u, p, t)
        op._Bb = self._Bb.copy()
        return op

    def update_coefficients_inplace(self, u, p, t) -> lzt.OpT:
        self._A.update_coefficients_inplace(u, p, t)
        self._B.update_coefficients_inplace(u, p, t)
        if self._update_func_inplace is not lza.DEFAULT_UPDATE_FUNC:
            self._update_func_inplace(self._b, u, p, t)
        else:
            self._b = self._update_func(self._b, u, p, t)
        return self

    def _resize(self, n: lzt.Integer):
        b = self._b
        xp = lzu.get_array_module(b)
        b_new = xp.zeros((n, *b.shape[1:]), dtype=b.dtype)
        m = min(n, b.shape[0])
        b_new[:m] = b[:m]
        self._b = b_new
        self._Bb = self._B.apply(self._b)

    def _expr(self) -> tuple:
        return ("affine", self._A, self._B, f"b{self._b.shape}")


def AddVector(*args, update_func=lza.DEFAULT_UPDATE_FUNC, update_func_inplace=lza.DEFAULT_UPDATE_FUNC):
    r"""
    Shift operators :math:`u \to u + b` and :math:`u \to u + B b`.

    Parameters
    ----------
    \*args: NDArray | (OpT, NDArray)
        Either `b` alone, or `B` followed by `b`.
    update_func, update_func_inplace: callable
        Coefficient updates of `b`.  (See :py:class:`~lazop.operator.AffineOperator`.)

    Returns
    -------
    op: AffineOperator
    """
    from lazop.operator.basic import IdentityOperator

    kwargs = dict(update_func=update_func, update_func_inplace=update_func_inplace)
    if len(args) == 1:
        (b,) = args
        N = b.shape[0]
        return AffineOperator(IdentityOperator(N), IdentityOperator(N), b, **kwargs)
    elif len(args) == 2:
        B, b = args
        B = _as_operator(B)
        return AffineOperator(IdentityOperator(B.codim), B, b, **kwargs)
    else:
        raise ValueError(f"AddVector: expected (b,) or (B, b), got {len(args)} arguments.")
