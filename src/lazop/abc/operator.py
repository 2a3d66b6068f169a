import collections.abc as cabc
import copy
import enum
import typing as typ
import warnings

import numpy as np

import lazop.info.config as lzc
import lazop.info.deps as lzd
import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.info.warning as lzw
import lazop.math.linalg as lzl
import lazop.runtime as lzrt

__all__ = [
    "DEFAULT_UPDATE_FUNC",
    "Property",
    "Operator",
    "ScalarOperatorBase",
]

_log = lzc.get_logger("operator")


def DEFAULT_UPDATE_FUNC(A, u, p, t):
    """
    Coefficient update which leaves the coefficient untouched.

    Leaves holding this update function are constant.
    """
    return A


@enum.unique
class Property(enum.Enum):
    """
    Operator capabilities.

    Each member names the :py:class:`~lazop.abc.Operator` predicate which answers it.
    """

    LINEAR = "islinear"
    CONSTANT = "isconstant"
    ADJOINT = "has_adjoint"
    MUL = "has_mul"
    MUL_INPLACE = "has_mul_inplace"
    LDIV = "has_ldiv"
    LDIV_INPLACE = "has_ldiv_inplace"
    SQUARE = "issquare"
    ZERO = "iszero"


class Operator:
    r"""
    Abstract Base Class for lazy operators :math:`L: \mathbb{C}^{N} \to \mathbb{C}^{M}`.

    Operators are lazy: sums, compositions, scalings, adjoints, inverses and tensor products of operators are
    operators themselves, and are evaluated without materializing dense matrices.

    Operators act on (N,) vectors or on (N, K) batches of column vectors.

    Sub-classes implement the following hooks, all of which take a :py:class:`~lazop.math.linalg.Trans` mode
    describing whether :math:`L`, :math:`L^{T}`, :math:`L^{H}` or :math:`\overline{L}` is evaluated:

    * ``_apply(arr, trans)``: out-of-place product.
    * ``_mul(out, arr, trans, alpha, beta)``: in-place product :math:`\text{out} \leftarrow \alpha L x + \beta\,
      \text{out}`.
    * ``_solve(arr, trans)``: out-of-place solve.
    * ``_ldiv(out, arr, trans)``: in-place solve.
    * ``_ldiv_inplace(arr, trans)``: overwriting solve.

    Public methods validate capabilities, shapes and cache state, then forward to the hooks.

    In-place evaluation is allocation-free: scratch space is allocated once by :py:meth:`cache_operator` for a given
    batch shape, and re-used afterwards.
    """

    #: Does ``_mul()`` honor (alpha, beta) natively?
    _native_axpby: bool = True

    # Operators take precedence over NumPy in mixed arithmetic.
    __array_ufunc__ = None

    def __init__(self):
        # batch shape -> (array module, dtype, scratch)
        self._cache = dict()

    # Shape/Type --------------------------------------------------------------
    @property
    def shape(self) -> lzt.OpShape:
        """(codim, dim) of the operator."""
        return self._shape

    @property
    def dim(self) -> lzt.Integer:
        """Input dimension."""
        return self.shape[1]

    @property
    def codim(self) -> lzt.Integer:
        """Output dimension."""
        return self.shape[0]

    @property
    def dtype(self) -> np.dtype:
        raise NotImplementedError

    # Capabilities ------------------------------------------------------------
    def islinear(self) -> bool:
        return True

    def isconstant(self) -> bool:
        return all(op.isconstant() for op in self._children())

    def has_adjoint(self) -> bool:
        return False

    def has_mul(self) -> bool:
        return True

    def has_mul_inplace(self) -> bool:
        return True

    def has_ldiv(self) -> bool:
        return False

    def has_ldiv_inplace(self) -> bool:
        return False

    def issquare(self) -> bool:
        return self.dim == self.codim

    def iszero(self) -> bool:
        return False

    def properties(self) -> cabc.Set[Property]:
        """Capabilities of the operator."""
        return frozenset(p for p in Property if getattr(self, p.value)())

    def has(self, prop: typ.Union[Property, cabc.Collection[Property]]) -> bool:
        """
        Verify if operator possesses supplied properties.
        """
        if isinstance(prop, Property):
            prop = (prop,)
        return frozenset(prop) <= self.properties()

    # Evaluation --------------------------------------------------------------
    def apply(self, arr: lzt.NDArray) -> lzt.NDArray:
        """
        Evaluate the operator.

        Parameters
        ----------
        arr: NDArray
            (N,) or (N, K) input.

        Returns
        -------
        out: NDArray
            (M,) or (M, K) output.
        """
        self._require("has_mul", "multiply")
        self._check_dim(arr, self.dim)
        return self._apply(arr, lzl.Trans.N)

    def __call__(self, arr: lzt.NDArray) -> lzt.NDArray:
        """
        Alias for :py:meth:`~lazop.abc.Operator.apply`.
        """
        return self.apply(arr)

    def solve(self, arr: lzt.NDArray) -> lzt.NDArray:
        r"""
        Evaluate the inverse action :math:`L^{-1} x`.

        Parameters
        ----------
        arr: NDArray
            (M,) or (M, K) input.

        Returns
        -------
        out: NDArray
            (N,) or (N, K) output.
        """
        self._require("has_ldiv", "solve")
        self._check_dim(arr, self.codim)
        return self._solve(arr, lzl.Trans.N)

    def mul(
        self,
        out: lzt.NDArray,
        arr: lzt.NDArray,
        alpha: lzt.Number = 1,
        beta: lzt.Number = 0,
    ) -> lzt.NDArray:
        r"""
        In-place evaluation :math:`\text{out} \leftarrow \alpha L x + \beta\, \text{out}`.

        `out` is not read if `beta` is zero.

        Parameters
        ----------
        out: NDArray
            (M,) or (M, K) output buffer.
        arr: NDArray
            (N,) or (N, K) input.
        alpha, beta: Number
            Scaling coefficients.

        Returns
        -------
        out: NDArray
            The output buffer.
        """
        self._require("has_mul_inplace", "in-place multiply")
        self._check_dim(arr, self.dim)
        self._check_out(out, arr, self.codim)
        self._require_cache(arr)
        self._mul(out, arr, lzl.Trans.N, alpha, beta)
        return out

    def ldiv(self, out: lzt.NDArray, arr: lzt.NDArray) -> lzt.NDArray:
        r"""
        In-place solve :math:`\text{out} \leftarrow L^{-1} x`.
        """
        self._require("has_ldiv_inplace", "in-place solve")
        self._check_dim(arr, self.codim)
        self._check_out(out, arr, self.dim)
        self._require_cache(arr)
        self._ldiv(out, arr, lzl.Trans.N)
        return out

    def ldiv_inplace(self, arr: lzt.NDArray) -> lzt.NDArray:
        r"""
        Overwriting solve :math:`x \leftarrow L^{-1} x`.

        Only defined for square operators.
        """
        self._require("has_ldiv_inplace", "in-place solve")
        self._require_square()
        self._check_dim(arr, self.codim)
        self._require_cache(arr)
        self._ldiv_inplace(arr, lzl.Trans.N)
        return arr

    def _apply(self, arr: lzt.NDArray, trans: lzl.Trans) -> lzt.NDArray:
        raise lze.capability_missing(self, "multiply")

    def _mul(self, out: lzt.NDArray, arr: lzt.NDArray, trans: lzl.Trans, alpha=1, beta=0):
        raise lze.capability_missing(self, "in-place multiply")

    def _solve(self, arr: lzt.NDArray, trans: lzl.Trans) -> lzt.NDArray:
        raise lze.capability_missing(self, "solve")

    def _ldiv(self, out: lzt.NDArray, arr: lzt.NDArray, trans: lzl.Trans):
        raise lze.capability_missing(self, "in-place solve")

    def _ldiv_inplace(self, arr: lzt.NDArray, trans: lzl.Trans):
        raise lze.capability_missing(self, "in-place solve")

    # Derived Operators -------------------------------------------------------
    @property
    def H(self) -> lzt.OpT:
        """
        Adjoint operator.

        See Also
        --------
        :py:class:`~lazop.abc.arithmetic.AdjointRule`
        """
        import lazop.abc.arithmetic as arithmetic

        return arithmetic.AdjointRule(op=self).op()

    @property
    def T(self) -> lzt.OpT:
        """
        Transposed operator.

        See Also
        --------
        :py:class:`~lazop.abc.arithmetic.TransposeRule`
        """
        import lazop.abc.arithmetic as arithmetic

        return arithmetic.TransposeRule(op=self).op()

    def adjoint(self) -> lzt.OpT:
        """
        Alias for :py:attr:`~lazop.abc.Operator.H`.
        """
        return self.H

    def transpose(self) -> lzt.OpT:
        """
        Alias for :py:attr:`~lazop.abc.Operator.T`.
        """
        return self.T

    def inv(self) -> lzt.OpT:
        """
        Lazy inverse operator: multiplying by it solves with the operator, and vice-versa.

        See Also
        --------
        :py:class:`~lazop.abc.arithmetic.InvertRule`
        """
        import lazop.abc.arithmetic as arithmetic

        return arithmetic.InvertRule(op=self).op()

    def conj(self) -> lzt.OpT:
        """
        Complex-conjugate operator.
        """
        if np.dtype(self.dtype).kind != "c":
            return self
        return self.H.T

    def _adjoint(self) -> typ.Optional[lzt.OpT]:
        # Structural adjoint (if any): leaves expressing their adjoint without a wrapper override this.
        return None

    def _transpose(self) -> typ.Optional[lzt.OpT]:
        return None

    def _inverse(self) -> typ.Optional[lzt.OpT]:
        return None

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        """
        Matrix representation of a linear operator.

        Parameters
        ----------
        xp: ArrayModule
            Which array module to use to represent the output.  (Default: NumPy.)
        dtype: DType
            Precision of the array.  (Default: operator dtype promoted to the runtime precision.)

        Returns
        -------
        A: NDArray
            (codim, dim) array-representation of the operator.
        """
        if not self.islinear():
            raise lze.capability_missing(self, "dense conversion of a non-linear operator")
        if xp is None:
            xp = lzd.NDArrayInfo.default().module()
        if dtype is None:
            dtype = np.result_type(self.dtype, lzrt.getPrecision().value)
        E = xp.eye(self.dim, dtype=dtype)
        A = self._apply(E, lzl.Trans.N)
        return xp.asarray(A).astype(dtype, copy=False)

    # Coefficient Updates -----------------------------------------------------
    def update_coefficients(self, u, p, t) -> lzt.OpT:
        """
        Refresh time/state-dependent coefficients.

        Parameters
        ----------
        u: NDArray
            State.
        p: object
            Parameters.
        t: Number
            Time.

        Returns
        -------
        op: OpT
            Operator with refreshed coefficients.  The original operator is left untouched.  Constant operators are
            returned as-is.
        """
        if self.isconstant():
            return self
        ops = [op.update_coefficients(u, p, t) for op in self._children()]
        return self._rebuild(ops)

    def update_coefficients_inplace(self, u, p, t) -> lzt.OpT:
        """
        Refresh time/state-dependent coefficients in place.

        Scratch allocated by :py:meth:`cache_operator` stays valid: coefficient updates never change shapes.

        Returns
        -------
        op: OpT
            The operator itself.
        """
        for op in self._children():
            op.update_coefficients_inplace(u, p, t)
        return self

    def _children(self) -> tuple:
        # Direct sub-operators.
        return ()

    def _set_children(self, ops: cabc.Sequence[lzt.OpT]):
        pass

    def _rebuild(self, ops: cabc.Sequence[lzt.OpT]) -> lzt.OpT:
        op = copy.copy(self)
        op._cache = dict(self._cache)
        op._set_children(ops)
        return op

    # Caching -----------------------------------------------------------------
    def cache_operator(self, arr: lzt.NDArray) -> lzt.OpT:
        """
        Allocate the scratch space needed to evaluate the operator in place on inputs shaped like `arr`.

        Caching is idempotent: scratch for a batch shape is allocated at most once.

        Parameters
        ----------
        arr: NDArray
            (N,) or (N, K) prototype input.  Only its shape, dtype and array module matter: later in-place calls
            must use the same batch shape and array module, and a dtype which casts safely to the cached one.

        Returns
        -------
        op: OpT
            The operator itself.
        """
        self._check_dim(arr, self.dim)
        key = self._cache_key(arr)
        if not self._cache_fits(arr):
            scratch = None
            if self._needs_cache():
                scratch = self._cache_self(arr)
                _log.debug(f"{self!r}: allocated scratch for batch shape {key}.")
            ndi = lzd.NDArrayInfo.from_obj(arr)
            dtype = np.result_type(self.dtype, arr.dtype)
            self._cache[key] = (ndi, dtype, scratch)
        self._own_children()
        self._cache_internals(arr)
        return self

    def iscached(self) -> bool:
        """
        Has :py:meth:`cache_operator` been called on this operator and all its sub-operators?
        """
        own = (not self._needs_cache()) or (len(self._cache) > 0)
        return own and all(op.iscached() for op in self._children())

    @staticmethod
    def _cache_key(arr: lzt.NDArray) -> tuple:
        return tuple(arr.shape[1:])

    def _cache_fits(self, arr: lzt.NDArray) -> bool:
        # Scratch for `arr`'s batch shape exists, lives in its array module and can hold its values.
        if (entry := self._cache.get(self._cache_key(arr))) is None:
            return False
        ndi, dtype, _ = entry
        ndi_in = lzd.NDArrayInfo.from_obj(arr)
        return (ndi_in == ndi) and np.can_cast(np.result_type(self.dtype, arr.dtype), dtype)

    def _needs_cache(self) -> bool:
        return False

    def _cache_self(self, arr: lzt.NDArray):
        # Allocate own scratch for inputs shaped like `arr`.
        return None

    def _cache_internals(self, arr: lzt.NDArray):
        # Cache sub-operators given an input of self shaped like `arr`.
        for op in self._children():
            op.cache_operator(arr)

    def _scratch(self, arr: lzt.NDArray):
        try:
            return self._cache[self._cache_key(arr)][2]
        except KeyError:
            raise lze.cache_uninitialized(self) from None

    def _has_scratch(self) -> bool:
        return self._needs_cache() or any(op._has_scratch() for op in self._children())

    def _own_children(self):
        # Sub-operators appearing more than once must not share scratch.
        ops = list(self._children())
        seen = set()
        changed = False
        for i, op in enumerate(ops):
            if (id(op) in seen) and op._has_scratch():
                _log.debug(f"{self!r}: copying shared sub-operator {op!r}.")
                ops[i] = copy.deepcopy(op)
                changed = True
            seen.add(id(op))
        if changed:
            self._set_children(ops)

    def _alloc(self, arr: lzt.NDArray, shape: lzt.NDArrayShape) -> lzt.NDArray:
        dtype = np.result_type(self.dtype, arr.dtype)
        return lzl.zeros(arr, shape, dtype)

    # Resizing ----------------------------------------------------------------
    def resize(self, n: lzt.Integer) -> lzt.OpT:
        """
        Change the size of a square operator in place.

        Sub-operators are resized recursively, and cached scratch is re-derived for the new size.

        Returns
        -------
        op: OpT
            The operator itself.
        """
        for op in self._children():
            op.resize(n)
        self._resize(n)

        protos = [(key, ndi, dtype) for (key, (ndi, dtype, _)) in self._cache.items()]
        self._cache = dict()
        if self.dim is not None:
            for key, ndi, dtype in protos:
                self.cache_operator(ndi.module().zeros((self.dim, *key), dtype=dtype))
        _log.debug(f"{self!r}: resized to {n}.")
        return self

    def _resize(self, n: lzt.Integer):
        if len(self._children()) == 0:
            raise lze.capability_missing(self, "resize")

    # Operator Arithmetic -----------------------------------------------------
    def __add__(self, other: typ.Union[lzt.Number, lzt.OpT]) -> lzt.OpT:
        """
        Add two operators.

        Numbers are lifted to scalar operators, i.e. ``L + a`` is ``L + a * I``.

        See Also
        --------
        :py:class:`~lazop.abc.arithmetic.AddRule`
        """
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, (Operator, lzt.Number)):
            return arithmetic.AddRule(lhs=self, rhs=other).op()
        else:
            return NotImplemented

    def __radd__(self, other: lzt.Number) -> lzt.OpT:
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, lzt.Number):
            return arithmetic.AddRule(lhs=other, rhs=self).op()
        else:
            return NotImplemented

    def __sub__(self, other: typ.Union[lzt.Number, lzt.OpT]) -> lzt.OpT:
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, (Operator, lzt.Number)):
            return arithmetic.AddRule(lhs=self, rhs=-other).op()
        else:
            return NotImplemented

    def __rsub__(self, other: lzt.Number) -> lzt.OpT:
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, lzt.Number):
            return arithmetic.AddRule(lhs=other, rhs=-self).op()
        else:
            return NotImplemented

    def __neg__(self) -> lzt.OpT:
        """
        Negate an operator.

        Returns
        -------
        op: OpT
            Composite operator ``-1 * self``.
        """
        import lazop.abc.arithmetic as arithmetic

        return arithmetic.ScaleRule(op=self, cst=-1).op()

    def __mul__(self, other: typ.Union[lzt.Number, lzt.OpT]) -> lzt.OpT:
        """
        Compose two operators, or scale an operator by a constant.

        Parameters
        ----------
        self: OpT
            (A, B) Left operand.
        other: Number | OpT
            scalar, or
            (B, C) Right operand.

        Returns
        -------
        op: OpT
            (A, B) scaled operator, or
            (A, C) composed operator ``self * other``.

        See Also
        --------
        :py:class:`~lazop.abc.arithmetic.ScaleRule`,
        :py:class:`~lazop.abc.arithmetic.ChainRule`
        """
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, Operator):
            return arithmetic.ChainRule(lhs=self, rhs=other).op()
        elif isinstance(other, lzt.Number):
            return arithmetic.ScaleRule(op=self, cst=other, left=False).op()
        else:
            return NotImplemented

    def __rmul__(self, other: lzt.Number) -> lzt.OpT:
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, lzt.Number):
            return arithmetic.ScaleRule(op=self, cst=other).op()
        else:
            return NotImplemented

    def __matmul__(self, other):
        """
        Compose with an operator, or evaluate on an array.
        """
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, Operator):
            return arithmetic.ChainRule(lhs=self, rhs=other).op()
        elif hasattr(other, "shape") and hasattr(other, "dtype"):
            return self.apply(other)
        else:
            return NotImplemented

    def __rmatmul__(self, other):
        # (NDArray @ op) unsupported
        return NotImplemented

    def __truediv__(self, other: typ.Union[lzt.Number, lzt.ScalarOpT]) -> lzt.OpT:
        import lazop.abc.arithmetic as arithmetic

        if isinstance(other, ScalarOperatorBase):
            return arithmetic.ChainRule(lhs=self, rhs=other.inv()).op()
        elif isinstance(other, lzt.Number):
            return arithmetic.ScaleRule(op=self, cst=1 / other, left=False).op()
        else:
            return NotImplemented

    def __pow__(self, k: lzt.Integer) -> lzt.OpT:
        """
        Exponentiate an operator, i.e. compose it with itself.

        Exponentiation is only allowed for square operators.  ``L ** 0`` is the identity.
        """
        import lazop.abc.arithmetic as arithmetic

        if isinstance(k, lzt.Integer) and (k >= 0):
            return arithmetic.PowerRule(op=self, k=k).op()
        else:
            return NotImplemented

    # Internal Helpers --------------------------------------------------------
    def _require(self, predicate: str, what: str):
        if not getattr(self, predicate)():
            if predicate.startswith("has_ldiv") and self._singular():
                raise lze.NotInvertibleError(f"{self!r}: operator is singular, {what} impossible.")
            raise lze.capability_missing(self, what)

    def _singular(self) -> bool:
        # Provably singular: no solve can succeed, whatever the input.
        return self.iszero()

    def _square_members(self) -> cabc.Iterable[lzt.OpT]:
        # Operators which must be square for an overwriting solve.
        return (self,)

    def _require_square(self):
        for op in self._square_members():
            if not op.issquare():
                msg = f"{self!r}: overwriting solve requires square operators, got {op!r}."
                raise lze.UnsquareError(msg)

    def _check_dim(self, arr: lzt.NDArray, n: lzt.Integer):
        if arr.ndim not in (1, 2):
            raise lze.shape_mismatch(self, "(N,) or (N, K)", arr.shape)
        if (n is not None) and (arr.shape[0] != n):
            raise lze.shape_mismatch(self, f"({n},) or ({n}, K)", arr.shape)

    def _check_out(self, out: lzt.NDArray, arr: lzt.NDArray, n: lzt.Integer):
        sh = arr.shape if (n is None) else (n, *arr.shape[1:])
        if tuple(out.shape) != tuple(sh):
            raise lze.shape_mismatch(self, sh, out.shape)
        dtype = np.result_type(self.dtype, arr.dtype)
        if np.can_cast(dtype, out.dtype, casting="same_kind") and not np.can_cast(dtype, out.dtype):
            msg = f"{self!r}: {dtype} result downcast to {out.dtype} output."
            warnings.warn(msg, lzw.PrecisionWarning)

    def _require_cache(self, arr: lzt.NDArray):
        if not self.iscached():
            raise lze.cache_uninitialized(self)
        if (self._cache_key(arr) in self._cache) and (not self._cache_fits(arr)):
            ndi, dtype, _ = self._cache[self._cache_key(arr)]
            got = (lzd.NDArrayInfo.from_obj(arr).name, np.result_type(self.dtype, arr.dtype))
            raise lze.cache_incompatible(self, (ndi.name, dtype), got)

    def __repr__(self) -> str:
        klass = self.__class__.__name__
        return f"{klass}{self.shape}"

    def _expr(self) -> tuple:
        """
        Show the expression-representation of the operator.

        If overridden, must return a tuple of the form

            (head, *tail),

        where `head` is the operator (ex: +/*), and `tail` denotes all the expression's terms.
        If an operator cannot be expanded further, then this method should return (self,).
        """
        return (self,)

    def expr(self, level: int = 0, strip: bool = True) -> str:
        """
        Pretty-Print the expression representation of the operator.

        Useful for debugging arithmetic-induced expressions.

        Example
        -------

        .. code-block:: python3

           >>> import numpy as np
           >>> import lazop.operator as lzo

           >>> A = lzo.MatrixOperator(np.ones((3, 3)))
           >>> D = lzo.DiagonalOperator(np.arange(1, 4))
           >>> print((2 * A + D @ A).expr())
           [add, ==> AddedOperator(3, 3)
           .[scale, ==> ScaledOperator(3, 3)
           ..MatrixOperator(3, 3),
           ..ScalarOperator()],
           .[compose, ==> ComposedOperator(3, 3)
           ..MatrixOperator(3, 3),
           ..MatrixOperator(3, 3)]]
        """
        fmt = lambda obj, lvl: ("." * lvl) + str(obj)
        lines = []

        head, *tail = self._expr()
        if len(tail) == 0:
            head = f"{repr(head)},"
        else:
            head = f"[{head}, ==> {repr(self)}"
        lines.append(fmt(head, level))

        for t in tail:
            if isinstance(t, Operator):
                lines += t.expr(level=level + 1, strip=False).split("\n")
            else:
                t = f"{t},"
                lines.append(fmt(t, level + 1))
        if len(tail) > 0:
            # Drop comma for last tail item, then close the sub-expression.
            lines[-1] = lines[-1][:-1]
            lines[-1] += "],"

        out = "\n".join(lines)
        if strip:
            out = out.strip(",")  # drop comma at top-level tail.
        return out


class ScalarOperatorBase(Operator):
    r"""
    Base class for scalar operators :math:`\alpha I`, acting on inputs of any size.

    Scalar operators have no shape: ``shape == ()`` and ``dim``/``codim`` are undefined.

    Sub-classes implement :py:meth:`item`.
    """

    @property
    def shape(self) -> tuple:
        return ()

    @property
    def dim(self) -> None:
        return None

    @property
    def codim(self) -> None:
        return None

    @property
    def dtype(self) -> np.dtype:
        return np.asarray(self.item()).dtype

    def item(self) -> lzt.Number:
        """Current value of the scalar."""
        raise NotImplementedError

    def __float__(self) -> float:
        return float(np.real(self.item()))

    def __complex__(self) -> complex:
        return complex(self.item())

    def issquare(self) -> bool:
        return True

    def has_adjoint(self) -> bool:
        return True

    def iszero(self) -> bool:
        return self.item() == 0

    def has_ldiv(self) -> bool:
        return not self.iszero()

    def has_ldiv_inplace(self) -> bool:
        return self.has_ldiv()

    def _value(self, trans: lzl.Trans) -> lzt.Number:
        v = self.item()
        return np.conj(v) if trans.conjugate else v

    def _apply(self, arr, trans):
        return self._value(trans) * arr

    def _mul(self, out, arr, trans, alpha=1, beta=0):
        lzl.axpby(out, arr, alpha * self._value(trans), beta)

    def _solve(self, arr, trans):
        return arr / self._value(trans)

    def _ldiv(self, out, arr, trans):
        lzl.axpby(out, arr, 1 / self._value(trans), 0)

    def _ldiv_inplace(self, arr, trans):
        arr /= self._value(trans)

    def _transpose(self) -> lzt.ScalarOpT:
        return self

    def _adjoint(self) -> lzt.ScalarOpT:
        return self.conj()

    def _resize(self, n: lzt.Integer):
        # size-agnostic
        pass

    def asarray(self, xp: lzt.ArrayModule = None, dtype: lzt.DType = None) -> lzt.NDArray:
        raise lze.capability_missing(self, "dense conversion of a size-agnostic operator")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
