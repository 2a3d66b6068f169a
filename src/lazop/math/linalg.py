r"""
Array primitives consumed by operators holding an explicit payload.

A *payload* is the coefficient of a :py:class:`~lazop.operator.MatrixOperator`: a dense NUMPY/CUPY/DASK array, a
sparse SCIPY/CUPY array (diagonal sparse arrays are special-cased), or a :py:class:`Factorization`.  This module maps
the primitives needed by the operator algebra (multiply, multiply-accumulate, solve, solve-in-place, factorize,
dense conversion) onto the backend libraries.

All primitives accept a :py:class:`Trans` mode so that transposed/adjoint actions never materialize transposed
payloads.
"""

import enum
import warnings

import numpy as np
import scipy.linalg as spl

import lazop.info.config as lzc
import lazop.info.deps as lzd
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.info.warning as lzw
import lazop.util as lzu

__all__ = [
    "Trans",
    "Payload",
    "Factorization",
    "LU",
    "Cholesky",
    "QR",
    "SparseLU",
    "as_payload",
    "axpby",
    "conj",
    "diagonal",
    "factorize",
    "has_mul",
    "has_mul_inplace",
    "has_solve",
    "has_solve_inplace",
    "is_zero",
    "matmul",
    "matmul_",
    "solve",
    "solve_",
    "solve_inplace",
    "to_dense",
    "zeros",
]

_log = lzc.get_logger("linalg")


@enum.unique
class Trans(enum.Enum):
    r"""
    Transposition mode applied to the action of an operator :math:`A`.

    * N: :math:`A`
    * T: :math:`A^{T}`
    * C: :math:`A^{H}`
    * CONJ: :math:`\overline{A}`
    """

    N = (False, False)
    T = (True, False)
    C = (True, True)
    CONJ = (False, True)

    @property
    def transpose(self) -> bool:
        return self.value[0]

    @property
    def conjugate(self) -> bool:
        return self.value[1]

    def compose(self, other: "Trans") -> "Trans":
        """
        Mode obtained by viewing an operator through `other`, then through `self`.
        """
        return Trans((self.transpose ^ other.transpose, self.conjugate ^ other.conjugate))

    def dims(self, shape: lzt.OpShape) -> lzt.OpShape:
        """
        (codim, dim) of the operator once viewed through this mode.
        """
        return tuple(shape[::-1]) if self.transpose else tuple(shape)


@enum.unique
class Payload(enum.Enum):
    """
    Supported operator payloads.
    """

    DENSE = enum.auto()  # NUMPY/CUPY
    DASK = enum.auto()
    SPARSE = enum.auto()
    DIAGONAL = enum.auto()
    FACTORIZATION = enum.auto()

    @classmethod
    def from_obj(cls, A) -> "Payload":
        """Find payload category associated to `A`."""
        if isinstance(A, Factorization):
            return cls.FACTORIZATION

        try:
            lzd.SparseArrayInfo.from_obj(A)
        except ValueError:
            pass
        else:
            return cls.DIAGONAL if _is_diagonal(A) else cls.SPARSE

        ndi = lzd.NDArrayInfo.from_obj(A)
        return cls.DASK if (ndi == lzd.NDArrayInfo.DASK) else cls.DENSE


def as_payload(A):
    """
    Validate an operator payload.

    Array-likes not recognized as NUMPY/CUPY/DASK/sparse arrays (lists, tuples, ...) are converted to NUMPY.
    """
    try:
        Payload.from_obj(A)
    except ValueError:
        A = np.asarray(A)
    if len(A.shape) != 2:
        raise lze.ShapeMismatchError(f"Operator payloads must be 2D, got shape {A.shape}.")
    return A


# Factorizations --------------------------------------------------------------
class Factorization:
    """
    Solve-only payload holding a pre-computed factorization of a matrix :math:`A`.

    Sub-classes implement :py:meth:`solve` for modes N and T.  Conjugated modes are derived in
    :py:func:`~lazop.math.linalg.solve`.
    """

    def __init__(self, A):
        self._A = A
        self.shape = tuple(A.shape)
        self.dtype = np.dtype(A.dtype)

    def solve(self, x: lzt.NDArray, transpose: bool = False) -> lzt.NDArray:
        r"""
        Solve :math:`A y = x` (or :math:`A^{T} y = x` if `transpose`).
        """
        raise NotImplementedError

    def asarray(self) -> lzt.NDArray:
        """Dense form of the factorized matrix."""
        return self._A


class LU(Factorization):
    """
    Pivoted LU factorization of a square matrix.
    """

    def __init__(self, A):
        super().__init__(A)
        with warnings.catch_warnings():
            # singular factors are reported below
            warnings.simplefilter("ignore", spl.LinAlgWarning)
            self._lu, self._piv = spl.lu_factor(A, check_finite=False)
        if not np.all(np.diag(self._lu)):
            raise lze.NotInvertibleError("LU: operand is not invertible.")
        self.dtype = self._lu.dtype

    def solve(self, x: lzt.NDArray, transpose: bool = False) -> lzt.NDArray:
        return spl.lu_solve((self._lu, self._piv), x, trans=int(transpose), check_finite=False)


class Cholesky(Factorization):
    """
    Cholesky factorization of a Hermitian positive-definite matrix.
    """

    def __init__(self, A):
        super().__init__(A)
        try:
            self._c = spl.cho_factor(A, lower=False, check_finite=False)
        except np.linalg.LinAlgError as e:
            raise lze.NotInvertibleError("Cholesky: operand is not positive-definite.") from e
        self.dtype = self._c[0].dtype

    def solve(self, x: lzt.NDArray, transpose: bool = False) -> lzt.NDArray:
        # A = A^H, hence A^T = conj(A).
        if transpose and np.iscomplexobj(self._c[0]):
            return spl.cho_solve(self._c, x.conj(), check_finite=False).conj()
        return spl.cho_solve(self._c, x, check_finite=False)


class QR(Factorization):
    r"""
    Economic QR factorization of a tall full-rank matrix :math:`A \in \mathbb{C}^{M \times N}, M \ge N`.

    :py:meth:`solve` returns the least-squares solution of :math:`A y = x`, or the minimum-norm solution of
    :math:`A^{T} y = x`.
    """

    def __init__(self, A):
        super().__init__(A)
        M, N = self.shape
        if M < N:
            raise lze.ShapeMismatchError(f"QR: expected a (M, N) matrix with M >= N, got {self.shape}.")
        self._Q, self._R = spl.qr(A, mode="economic", check_finite=False)
        if not np.all(np.diag(self._R)):
            raise lze.NotInvertibleError("QR: operand is rank-deficient.")
        self.dtype = self._R.dtype

    def solve(self, x: lzt.NDArray, transpose: bool = False) -> lzt.NDArray:
        Q, R = self._Q, self._R
        if transpose:
            # A^T = R^T Q^T
            z = spl.solve_triangular(R, x, trans="T", check_finite=False)
            return Q.conj() @ z
        else:
            return spl.solve_triangular(R, Q.conj().T @ x, check_finite=False)


class SparseLU(Factorization):
    """
    Sparse LU factorization (SuperLU) of a square sparse matrix.
    """

    def __init__(self, A):
        super().__init__(A)
        spl_ = lzd.SparseArrayInfo.from_obj(A).module(linalg=True)
        try:
            self._lu = spl_.splu(A.tocsc())
        except RuntimeError as e:
            raise lze.NotInvertibleError("SparseLU: operand is not invertible.") from e
        if self.dtype.kind not in "fc":
            self.dtype = np.dtype(np.double)

    def solve(self, x: lzt.NDArray, transpose: bool = False) -> lzt.NDArray:
        return self._lu.solve(x, trans="T" if transpose else "N")

    def asarray(self) -> lzt.NDArray:
        return self._A.toarray()


def factorize(A, kind: str = "auto") -> Factorization:
    """
    Factorize a payload for repeated solves.

    Parameters
    ----------
    A: NDArray, SparseArray
        (M, N) payload.
    kind: str
        One of:

        * ``lu``: pivoted LU (dense), SuperLU (sparse).
        * ``cholesky``: Cholesky, for Hermitian positive-definite payloads.
        * ``qr``: economic QR, for tall payloads.
        * ``auto``: ``lu`` if square, ``qr`` otherwise.

    Returns
    -------
    F: Factorization
        Factorization of `A`.  Diagonal payloads and factorizations support in-place solves already: they are returned
        unchanged.
    """
    payload = Payload.from_obj(A)
    if payload in (Payload.FACTORIZATION, Payload.DIAGONAL):
        return A

    kind = kind.strip().lower()
    M, N = A.shape
    if kind == "auto":
        kind = "lu" if (M == N) else "qr"
    if kind not in ("lu", "cholesky", "qr"):
        raise ValueError(f"kind: expected lu/cholesky/qr/auto, got {kind}.")
    if (kind in ("lu", "cholesky")) and (M != N):
        raise lze.UnsquareError(f"{kind}: expected a square payload, got shape {A.shape}.")

    if payload == Payload.SPARSE:
        if kind == "lu":
            _log.debug(f"SparseLU factorization of a {A.shape} payload.")
            return SparseLU(A)
        msg = f"{kind} factorization of a sparse payload: densifying."
        warnings.warn(msg, lzw.DenseWarning)
        A = A.toarray()
    elif payload == Payload.DASK:
        lzw.warn_dask_perf("Factorization of DASK payloads is computed eagerly.")
    A = lzu.to_NUMPY(A)

    klass = dict(lu=LU, cholesky=Cholesky, qr=QR)[kind]
    _log.debug(f"{klass.__name__} factorization of a {A.shape} payload.")
    return klass(A)


# Capabilities ----------------------------------------------------------------
def _is_diagonal(A) -> bool:
    if getattr(A, "format", None) != "dia":
        return False
    offsets = lzu.to_NUMPY(A.offsets)
    return (offsets.size == 1) and (int(offsets[0]) == 0) and (A.shape[0] == A.shape[1])


def diagonal(A):
    """
    Diagonal of a diagonal sparse payload, as a writeable view into the payload's storage.
    """
    return A.data[0, : A.shape[0]]


def is_zero(A) -> bool:
    """Is the payload the zero matrix?"""
    payload = Payload.from_obj(A)
    if payload == Payload.FACTORIZATION:
        return False
    elif payload in (Payload.SPARSE, Payload.DIAGONAL):
        return A.count_nonzero() == 0
    elif payload == Payload.DASK:
        lzw.warn_dask_perf("Zero-test of DASK payloads triggers a computation.")
        return not bool(lzu.compute(A.any()))
    else:
        xp = lzu.get_array_module(A)
        return not bool(xp.any(A))


def has_mul(A) -> bool:
    return Payload.from_obj(A) != Payload.FACTORIZATION


def has_mul_inplace(A) -> bool:
    return Payload.from_obj(A) in (Payload.DENSE, Payload.SPARSE, Payload.DIAGONAL)


def has_solve(A) -> bool:
    payload = Payload.from_obj(A)
    if payload == Payload.FACTORIZATION:
        return True
    elif payload == Payload.DIAGONAL:
        d = diagonal(A)
        xp = lzu.get_array_module(d)
        return bool(xp.all(d != 0))
    elif payload == Payload.DASK:
        # not evaluated: operators should be quick to query.
        return True
    elif payload == Payload.SPARSE:
        return (A.shape[0] == A.shape[1]) and (not is_zero(A))
    else:
        return not is_zero(A)


def is_singular(A) -> bool:
    """
    Is a payload provably singular?  Only zero payloads and diagonals holding a zero are detected.
    """
    if Payload.from_obj(A) == Payload.DIAGONAL:
        d = diagonal(A)
        xp = lzu.get_array_module(d)
        return bool(xp.any(d == 0))
    return is_zero(A)


def has_solve_inplace(A) -> bool:
    payload = Payload.from_obj(A)
    if payload == Payload.FACTORIZATION:
        return True
    elif payload == Payload.DIAGONAL:
        return has_solve(A)
    else:
        return False


def _is_complex(A) -> bool:
    return np.dtype(A.dtype).kind == "c"


def _bcast(d, x):
    # broadcast a diagonal against (N,) or (N, K) inputs.
    return d if (x.ndim == 1) else d.reshape(-1, 1)


def _view(A, transpose: bool):
    return A.T if transpose else A


# Evaluation ------------------------------------------------------------------
def zeros(like, shape: lzt.NDArrayShape, dtype: lzt.DType):
    """Allocate a zero-filled array in the backend of `like`."""
    xp = lzu.get_array_module(like)
    return xp.zeros(shape, dtype=dtype)


def axpby(out, y, alpha=1, beta=0):
    r"""
    In-place update :math:`\text{out} \leftarrow \alpha y + \beta\, \text{out}`.

    `out` is never read when `beta` is zero.
    """
    if beta == 0:
        if alpha == 1:
            out[...] = y
        else:
            xp = lzu.get_array_module(out)
            xp.multiply(y, alpha, out=out)
    else:
        if beta != 1:
            out *= beta
        if alpha == 1:
            out += y
        else:
            out += alpha * y
    return out


def conj(A):
    """Complex conjugate of a payload."""
    if Payload.from_obj(A) == Payload.FACTORIZATION:
        raise lze.CapabilityError("Factorization payloads cannot be conjugated.")
    return A.conj() if _is_complex(A) else A


def matmul(A, x: lzt.NDArray, trans: Trans = Trans.N) -> lzt.NDArray:
    """
    Out-of-place product :math:`\\text{op}(A) x`.
    """
    payload = Payload.from_obj(A)
    if payload == Payload.FACTORIZATION:
        raise lze.CapabilityError("Factorization payloads do not support multiply.")

    if trans.conjugate and _is_complex(A):
        # conj(A) x = conj(A conj(x))
        y = matmul(A, x.conj(), Trans((trans.transpose, False)))
        return y.conj()

    if payload == Payload.DIAGONAL:
        d = diagonal(A)
        return _bcast(d, x) * x
    else:
        return _view(A, trans.transpose) @ x


def _use_blas(out, A, x, alpha, beta) -> bool:
    # BLAS gemv/gemm only when all operands share a BLAS dtype.
    if not all(isinstance(_, np.ndarray) for _ in (out, A, x)):
        return False
    dtype = out.dtype
    if (dtype.char not in "fdFD") or (A.dtype != dtype) or (x.dtype != dtype):
        return False
    if (dtype.kind != "c") and (np.iscomplexobj(alpha) or np.iscomplexobj(beta)):
        return False
    return True


def _dense_matmul_(out, A, x, transpose: bool, alpha, beta):
    if (alpha == 1) and (beta == 0):
        xp = lzu.get_array_module(out)
        xp.matmul(_view(A, transpose), x, out=out)
    elif _use_blas(out, A, x, alpha, beta):
        if x.ndim == 1:
            gemv = spl.get_blas_funcs("gemv", (A, x, out))
            y = gemv(alpha, A, x, beta=beta, y=out, trans=int(transpose), overwrite_y=True)
        else:
            gemm = spl.get_blas_funcs("gemm", (A, x, out))
            y = gemm(alpha, A, x, beta=beta, c=out, trans_a=int(transpose), overwrite_c=True)
        if y is not out:  # BLAS could not write in place (layout/dtype).
            out[...] = y
    else:
        axpby(out, _view(A, transpose) @ x, alpha, beta)


def matmul_(out, A, x: lzt.NDArray, trans: Trans = Trans.N, alpha=1, beta=0):
    r"""
    In-place product :math:`\text{out} \leftarrow \alpha\, \text{op}(A) x + \beta\, \text{out}`.
    """
    payload = Payload.from_obj(A)
    if payload not in (Payload.DENSE, Payload.SPARSE, Payload.DIAGONAL):
        raise lze.CapabilityError(f"{payload.name} payloads do not support in-place multiply.")

    if trans.conjugate and _is_complex(A):
        # conj(A) x = conj(A conj(x))
        xp = lzu.get_array_module(out)
        xp.conjugate(out, out=out)
        matmul_(out, A, x.conj(), Trans((trans.transpose, False)), np.conj(alpha), np.conj(beta))
        xp.conjugate(out, out=out)
    elif payload == Payload.DENSE:
        _dense_matmul_(out, A, x, trans.transpose, alpha, beta)
    elif payload == Payload.DIAGONAL:
        d = _bcast(diagonal(A), x)
        if (alpha == 1) and (beta == 0):
            xp = lzu.get_array_module(out)
            xp.multiply(d, x, out=out)
        else:
            axpby(out, d * x, alpha, beta)
    else:
        axpby(out, matmul(A, x, trans), alpha, beta)
    return out


def solve(A, x: lzt.NDArray, trans: Trans = Trans.N) -> lzt.NDArray:
    r"""
    Out-of-place solve :math:`\text{op}(A)^{-1} x`.

    Non-square dense payloads are solved in the least-squares sense.
    """
    payload = Payload.from_obj(A)
    if trans.conjugate and _is_complex(A):
        y = solve(A, x.conj(), Trans((trans.transpose, False)))
        return y.conj()

    transpose = trans.transpose
    try:
        if payload == Payload.FACTORIZATION:
            y = A.solve(x, transpose=transpose)
        elif payload == Payload.DIAGONAL:
            y = x / _bcast(diagonal(A), x)
        elif payload == Payload.SPARSE:
            if A.shape[0] != A.shape[1]:
                raise lze.CapabilityError(f"Sparse payloads of shape {A.shape} do not support solve.")
            spl_ = lzd.SparseArrayInfo.from_obj(A).module(linalg=True)
            y = spl_.spsolve(_view(A, transpose).tocsc(), x)
            y = y.reshape((A.shape[0], *x.shape[1:]))  # (N, 1) inputs are squeezed by spsolve()
        else:
            ndi = lzd.NDArrayInfo.from_obj(A)
            xpl = ndi.module(linalg=True)
            At = _view(A, transpose)
            if At.shape[0] == At.shape[1]:
                y = xpl.solve(At, x)
            elif ndi == lzd.NDArrayInfo.NUMPY:
                y = xpl.lstsq(At, x, rcond=None)[0]
            else:
                y = xpl.lstsq(At, x)[0]
    except np.linalg.LinAlgError as e:
        raise lze.NotInvertibleError(f"Payload of shape {A.shape} is not invertible.") from e
    return y


def solve_(out, A, x: lzt.NDArray, trans: Trans = Trans.N):
    r"""
    In-place solve :math:`\text{out} \leftarrow \text{op}(A)^{-1} x`.
    """
    payload = Payload.from_obj(A)
    if payload == Payload.DIAGONAL:
        d = diagonal(A)
        if trans.conjugate:
            d = d.conj()
        xp = lzu.get_array_module(out)
        xp.divide(x, _bcast(d, x), out=out)
    elif payload == Payload.FACTORIZATION:
        out[...] = solve(A, x, trans)
    else:
        raise lze.CapabilityError(f"{payload.name} payloads do not support in-place solve.")
    return out


def solve_inplace(A, x: lzt.NDArray, trans: Trans = Trans.N):
    r"""
    Overwriting solve :math:`x \leftarrow \text{op}(A)^{-1} x`.
    """
    return solve_(x, A, x, trans)


def to_dense(A, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
    """
    Dense form of a payload.

    Parameters
    ----------
    xp: ArrayModule
        Array module of the output.  (Default: same as the payload.)
    dtype: DType
        Output dtype.  (Default: same as the payload.)
    """
    payload = Payload.from_obj(A)
    if payload in (Payload.SPARSE, Payload.DIAGONAL):
        B = A.toarray()
    elif payload == Payload.FACTORIZATION:
        B = A.asarray()
    else:
        B = A

    if (xp is not None) and (xp is not lzu.get_array_module(B)):
        B = xp.asarray(lzu.to_NUMPY(B))
    if dtype is not None:
        B = B.astype(dtype, copy=False)
    return B
