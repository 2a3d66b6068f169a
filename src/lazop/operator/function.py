import copy

import numpy as np

import lazop.abc.operator as lza
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.math.linalg as lzl
import lazop.util as lzu

__all__ = [
    "FunctionOperator",
]


class FunctionOperator(lza.Operator):
    r"""
    Matrix-free operator defined by user callables.

    Callables take one of two forms, detected from their arity:

    * out-of-place: ``op(u, p, t) -> v``;
    * in-place: ``op(v, u, p, t) -> None``, writing into `v`.

    Parameters
    ----------
    op: callable
        Forward action :math:`L`.
    input: NDArray
        (N,) or (N, K) prototype of the inputs.
    output: NDArray
        (M,) or (M, K) prototype of the outputs.
    op_adjoint: callable
        Adjoint action :math:`L^{H}`.
    op_inverse: callable
        Inverse action :math:`L^{-1}`.
    op_adjoint_inverse: callable
        Inverse-adjoint action :math:`L^{-H}`.
    p: object
        Parameters forwarded to the callables.
    t: Number
        Time forwarded to the callables.
    islinear: bool
        Are the callables linear?
    isconstant: bool
        Do the callables ignore (p, t)?  Constant operators skip coefficient updates.
    ishermitian: bool
        :math:`L = L^{H}`: `op_adjoint` defaults to `op`.
    issymmetric: bool
        :math:`L = L^{T}`: `op_adjoint` defaults to `op` for real-valued operators.

    Example
    -------
    .. code-block:: python3

       import numpy as np
       from lazop.operator import FunctionOperator

       N = 5
       L = FunctionOperator(
           lambda u, p, t: p * np.cumsum(u, axis=0),
           np.zeros(N),
           np.zeros(N),
           op_adjoint=lambda u, p, t: p * np.cumsum(u[::-1], axis=0)[::-1],
           p=2.0,
       )
       L @ np.ones(N)  # [2, 4, 6, 8, 10]
    """

    _native_axpby = False

    def __init__(
        self,
        op: lzt.UpdateFunc,
        input: lzt.NDArray,
        output: lzt.NDArray,
        op_adjoint: lzt.UpdateFunc = None,
        op_inverse: lzt.UpdateFunc = None,
        op_adjoint_inverse: lzt.UpdateFunc = None,
        p=None,
        t=None,
        islinear: bool = True,
        isconstant: bool = False,
        ishermitian: bool = False,
        issymmetric: bool = False,
    ):
        super().__init__()
        dtype = np.result_type(input.dtype, output.dtype)
        if ishermitian or (issymmetric and (dtype.kind != "c")):
            if op_adjoint is None:
                op_adjoint = op
            if op_adjoint_inverse is None:
                op_adjoint_inverse = op_inverse

        self._op = op
        self._op_adjoint = op_adjoint
        self._op_inverse = op_inverse
        self._op_adjoint_inverse = op_adjoint_inverse
        self._inplace = dict()
        for f in (op, op_adjoint, op_inverse, op_adjoint_inverse):
            if f is not None:
                self._inplace[f] = self._form(f)

        self._shape = (output.shape[0], input.shape[0])
        self._dtype = dtype
        self._p = p
        self._t = t
        self._islinear = islinear
        self._isconstant = isconstant

    @staticmethod
    def _form(f) -> bool:
        # Is `f` in-place?
        n = lzu.arity(f)
        if n == 3:
            return False
        elif n == 4:
            return True
        else:
            msg = f"FunctionOperator: expected op(u, p, t) or op(v, u, p, t), got a callable of arity {n}."
            raise ValueError(msg)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def islinear(self) -> bool:
        return self._islinear

    def isconstant(self) -> bool:
        return self._isconstant

    def has_adjoint(self) -> bool:
        return self._op_adjoint is not None

    def has_ldiv(self) -> bool:
        return self._op_inverse is not None

    def has_ldiv_inplace(self) -> bool:
        return self._op_inverse is not None

    def update_coefficients(self, u, p, t) -> lzt.OpT:
        if self.isconstant():
            return self
        op = copy.copy(self)
        op._cache = dict(self._cache)
        op._p, op._t = p, t
        return op

    def update_coefficients_inplace(self, u, p, t) -> lzt.OpT:
        if not self.isconstant():
            self._p, self._t = p, t
        return self

    def _swap(self, op, op_adjoint, op_inverse, op_adjoint_inverse, shape) -> lzt.OpT:
        L = copy.copy(self)
        L._cache = dict()
        L._op = op
        L._op_adjoint = op_adjoint
        L._op_inverse = op_inverse
        L._op_adjoint_inverse = op_adjoint_inverse
        L._shape = shape
        return L

    def _adjoint(self) -> lzt.OpT:
        return self._swap(
            op=self._op_adjoint,
            op_adjoint=self._op,
            op_inverse=self._op_adjoint_inverse,
            op_adjoint_inverse=self._op_inverse,
            shape=self.shape[::-1],
        )

    def _inverse(self) -> lzt.OpT:
        if self._op_inverse is None:
            return None
        return self._swap(
            op=self._op_inverse,
            op_adjoint=self._op_adjoint_inverse,
            op_inverse=self._op,
            op_adjoint_inverse=self._op_adjoint,
            shape=self.shape[::-1],
        )

    def _pick(self, trans: lzl.Trans, inverse: bool):
        # L^T = conj(L^H conj(.)), conj(L) = conj(L conj(.))
        if inverse:
            fwd, adj = self._op_inverse, self._op_adjoint_inverse
        else:
            fwd, adj = self._op, self._op_adjoint
        f = adj if trans.transpose else fwd
        if f is None:
            what = "adjoint" if trans.transpose else "solve"
            raise lze.capability_missing(self, what)
        conj = (trans.transpose ^ trans.conjugate) and (self._dtype.kind == "c")
        return f, conj

    def _out_dim(self, trans: lzl.Trans, inverse: bool) -> int:
        codim, dim = trans.dims(self.shape)
        return dim if inverse else codim

    def _evaluate(self, out, arr, trans, inverse: bool, alpha=1, beta=0):
        f, conj = self._pick(trans, inverse)
        x = arr.conj() if conj else arr
        plain = (alpha == 1) and (beta == 0)
        if plain:
            dst = out
        else:
            buf = self._scratch(arr)
            dst = buf["N"] if (out.shape[0] == self.codim) else buf["T"]

        if self._inplace[f]:
            f(dst, x, self._p, self._t)
        else:
            dst[...] = f(x, self._p, self._t)
        if conj:
            xp = lzu.get_array_module(dst)
            xp.conjugate(dst, out=dst)
        if not plain:
            lzl.axpby(out, dst, alpha, beta)

    def _call(self, arr, trans, inverse: bool):
        f, conj = self._pick(trans, inverse)
        if self._inplace[f]:
            out = self._alloc(arr, (self._out_dim(trans, inverse), *arr.shape[1:]))
            self._evaluate(out, arr, trans, inverse)
            return out
        x = arr.conj() if conj else arr
        y = f(x, self._p, self._t)
        return y.conj() if conj else y

    def _apply(self, arr, trans):
        return self._call(arr, trans, inverse=False)

    def _solve(self, arr, trans):
        return self._call(arr, trans, inverse=True)

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        self._evaluate(out, arr, trans, False, alpha, beta)

    def _ldiv(self, out, arr, trans):
        self._evaluate(out, arr, trans, True)

    def _ldiv_inplace(self, arr, trans):
        tmp = self._scratch(arr)["N"]
        tmp[...] = arr
        self._evaluate(arr, tmp, trans, True)

    def _needs_cache(self) -> bool:
        return True

    def _cache_self(self, arr):
        batch = arr.shape[1:]
        buf = dict(N=self._alloc(arr, (self.codim, *batch)))
        buf["T"] = buf["N"] if self.issquare() else self._alloc(arr, (self.dim, *batch))
        return buf

    def _resize(self, n: lzt.Integer):
        if not self.issquare():
            raise lze.capability_missing(self, "resize of a non-square operator")
        self._shape = (int(n), int(n))

    def conj(self) -> lzt.OpT:
        if self._dtype.kind != "c":
            return self
        return super().conj()

    def _expr(self) -> tuple:
        return (self,)
