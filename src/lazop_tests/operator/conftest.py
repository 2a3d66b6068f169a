import collections.abc as cabc
import copy
import typing as typ

import numpy as np
import pytest

import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop_tests.conftest as ct

# Naming conventions
# ------------------
#
# * op():
#       Operator to test.
#
# * dense():
#       (M, N) matrix representation of `op`, used to derive ground-truth outputs.
#
# * data_<method>(...)
#       Return mappings of the form dict(in_=dict(), out=Any), where:
#         * in_ are kwargs to `op.<method>()`;
#         * out denotes the output of `op.method(**data[in_])`.
#
# * test_[value,transparent,math,cache,interface]_<method>(op, ...)
#       Verify that <method>
#       * value: returns the right output values;
#       * transparent: does not modify its inputs;
#       * math: satisfies mathematical identities;
#       * cache: enforces cache initialization;
#       * interface: objects have the right interface.
#
DataLike = cabc.Mapping[str, typ.Any]


class OperatorT(ct.DisableTestMixin):
    # Class Properties --------------------------------------------------------
    interface: cabc.Set[str] = frozenset(
        {
            "shape",
            "dim",
            "codim",
            "dtype",
            "properties",
            "has",
            "apply",
            "__call__",
            "solve",
            "mul",
            "ldiv",
            "ldiv_inplace",
            "H",
            "T",
            "inv",
            "conj",
            "asarray",
            "update_coefficients",
            "update_coefficients_inplace",
            "cache_operator",
            "iscached",
            "resize",
            "expr",
        }
    )
    alpha, beta = 2, -0.5  # (alpha, beta) pair used by in-place tests

    # Internal helpers --------------------------------------------------------
    @staticmethod
    def _random_array(
        shape: lzt.NDArrayShape,
        seed: int = None,
        dtype: lzt.DType = np.double,
    ) -> np.ndarray:
        rng = np.random.default_rng(seed)
        x = rng.standard_normal(size=shape)
        if np.dtype(dtype).kind == "c":
            x = x + 1j * rng.standard_normal(size=shape)
        return x.astype(dtype)

    @staticmethod
    def _skip_unless(op: lzt.OpT, *predicates: str):
        for p in predicates:
            if not getattr(op, p)():
                pytest.skip(f"{p}() is False.")

    @staticmethod
    def _lstsq(A: np.ndarray, y: np.ndarray) -> np.ndarray:
        if A.shape[0] == A.shape[1]:
            return np.linalg.solve(A, y)
        else:
            return np.linalg.lstsq(A, y, rcond=None)[0]

    @classmethod
    def _metric(cls, a, b, as_dtype: lzt.DType) -> bool:
        return ct.allclose(a, b, as_dtype)

    @classmethod
    def _check_value(cls, func, data: DataLike, dtype: lzt.DType):
        out = func(**data["in_"])
        out_gt = data["out"]
        assert out.shape == out_gt.shape
        assert cls._metric(out, out_gt, as_dtype=dtype)

    @staticmethod
    def _check_no_side_effect(func, data: DataLike):
        in_ = copy.deepcopy(data["in_"])
        func(**in_)
        for k, v in in_.items():
            assert np.array_equal(v, data["in_"][k])

    # Fixtures (Public-Facing) ------------------------------------------------
    @pytest.fixture
    def op(self) -> lzt.OpT:
        # override in subclass to return the operator to test.
        raise NotImplementedError

    @pytest.fixture
    def dense(self) -> np.ndarray:
        # override in subclass to return the (M, N) matrix representation of `op`.
        raise NotImplementedError

    @pytest.fixture(params=[(), (3,)])
    def batch(self, request) -> lzt.NDArrayShape:
        return request.param

    @pytest.fixture
    def dtype(self, op, dense) -> np.dtype:
        return np.result_type(op.dtype, dense.dtype, np.double)

    @pytest.fixture
    def data_apply(self, dense, batch, dtype) -> DataLike:
        x = self._random_array((dense.shape[1], *batch), seed=1, dtype=dtype)
        return dict(
            in_=dict(arr=x),
            out=dense @ x,
        )

    @pytest.fixture
    def data_adjoint(self, dense, batch, dtype) -> DataLike:
        y = self._random_array((dense.shape[0], *batch), seed=2, dtype=dtype)
        return dict(
            in_=dict(arr=y),
            out=dense.conj().T @ y,
        )

    @pytest.fixture
    def data_solve(self, dense, batch, dtype) -> DataLike:
        y = self._random_array((dense.shape[0], *batch), seed=3, dtype=dtype)
        return dict(
            in_=dict(arr=y),
            out=self._lstsq(dense, y),
        )

    # Tests -------------------------------------------------------------------
    def test_interface(self, op):
        self._skip_if_disabled()
        assert self.interface <= frozenset(dir(op))

    def test_value_shape(self, op, dense):
        self._skip_if_disabled()
        assert op.shape == dense.shape
        assert (op.codim, op.dim) == dense.shape

    def test_value_properties(self, op):
        self._skip_if_disabled()
        props = op.properties()
        for p in props:
            assert getattr(op, p.value)()
        assert op.has(props)

    def test_value_apply(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._check_value(op.apply, data_apply, dtype)

    def test_value_call(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._check_value(op.__call__, data_apply, dtype)

    def test_value_matmul(self, op, data_apply, dtype):
        self._skip_if_disabled()
        out = op @ data_apply["in_"]["arr"]
        assert self._metric(out, data_apply["out"], as_dtype=dtype)

    def test_transparent_apply(self, op, data_apply):
        self._skip_if_disabled()
        self._check_no_side_effect(op.apply, data_apply)

    def test_value_mul(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_mul_inplace")
        x = data_apply["in_"]["arr"]
        op.cache_operator(x)

        out = self._random_array(data_apply["out"].shape, seed=4, dtype=dtype)
        out_gt = self.alpha * data_apply["out"] + self.beta * out
        y = op.mul(out, x, self.alpha, self.beta)
        assert y is out
        assert self._metric(out, out_gt, as_dtype=dtype)

    def test_value_mul_plain(self, op, data_apply, dtype):
        # (alpha, beta) = (1, 0) must not read `out`
        self._skip_if_disabled()
        self._skip_unless(op, "has_mul_inplace")
        x = data_apply["in_"]["arr"]
        op.cache_operator(x)

        out = np.full(data_apply["out"].shape, np.nan, dtype=dtype)
        op.mul(out, x)
        assert self._metric(out, data_apply["out"], as_dtype=dtype)

    def test_transparent_mul(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_mul_inplace")
        x = data_apply["in_"]["arr"]
        x_orig = x.copy()
        op.cache_operator(x)
        op.mul(np.zeros(data_apply["out"].shape, dtype=dtype), x)
        assert np.array_equal(x, x_orig)

    def test_cache_mul(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_mul_inplace")
        if op.iscached():
            pytest.skip("Operator needs no scratch.")
        out = np.zeros(data_apply["out"].shape, dtype=dtype)
        with pytest.raises(lze.CacheError):
            op.mul(out, data_apply["in_"]["arr"])

    def test_cache_iscached(self, op, data_apply):
        self._skip_if_disabled()
        op.cache_operator(data_apply["in_"]["arr"])
        assert op.iscached()

    def test_cache_idempotent(self, op, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_mul_inplace")
        x = data_apply["in_"]["arr"]
        op.cache_operator(x)
        op.cache_operator(x)

        out = np.zeros(data_apply["out"].shape, dtype=dtype)
        op.mul(out, x)
        assert self._metric(out, data_apply["out"], as_dtype=dtype)

    def test_value_solve(self, op, request, batch, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_ldiv")
        data_solve = request.getfixturevalue("data_solve")
        self._check_value(op.solve, data_solve, dtype)

    def test_value_ldiv(self, op, request, batch, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_ldiv_inplace")
        data_solve = request.getfixturevalue("data_solve")
        y = data_solve["in_"]["arr"]
        out = np.zeros(data_solve["out"].shape, dtype=dtype)
        op.cache_operator(out)

        op.ldiv(out, y)
        assert self._metric(out, data_solve["out"], as_dtype=dtype)

    def test_value_ldiv_inplace(self, op, request, batch, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_ldiv_inplace")
        data_solve = request.getfixturevalue("data_solve")
        y = data_solve["in_"]["arr"].copy()
        op.cache_operator(np.zeros(data_solve["out"].shape, dtype=dtype))

        if all(m.issquare() for m in op._square_members()):
            z = op.ldiv_inplace(y)
            assert z is y
            assert self._metric(y, data_solve["out"], as_dtype=dtype)
        else:
            with pytest.raises(lze.UnsquareError):
                op.ldiv_inplace(y)

    def test_value_asarray(self, op, dense, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "islinear")
        A = op.asarray(dtype=dtype)
        assert A.shape == dense.shape
        assert self._metric(A, dense, as_dtype=dtype)

    def test_value_adjoint(self, op, data_adjoint, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint")
        self._check_value(op.H.apply, data_adjoint, dtype)

    def test_value_transpose(self, op, dense, data_adjoint, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint")
        y = data_adjoint["in_"]["arr"]
        out = op.T.apply(y)
        assert self._metric(out, dense.T @ y, as_dtype=dtype)

    def test_value_mul_adjoint(self, op, data_adjoint, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint", "has_mul_inplace")
        y = data_adjoint["in_"]["arr"]
        opH = op.H
        opH.cache_operator(y)

        out = self._random_array(data_adjoint["out"].shape, seed=5, dtype=dtype)
        out_gt = self.alpha * data_adjoint["out"] + self.beta * out
        opH.mul(out, y, self.alpha, self.beta)
        assert self._metric(out, out_gt, as_dtype=dtype)

    def test_value_ldiv_adjoint(self, op, dense, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint", "has_ldiv_inplace")
        x = data_apply["in_"]["arr"]
        out_gt = self._lstsq(dense.conj().T, x)
        out = np.zeros(out_gt.shape, dtype=dtype)
        opH = op.H
        opH.cache_operator(out)

        opH.ldiv(out, x)
        assert self._metric(out, out_gt, as_dtype=dtype)

    def test_math_adjoint(self, op, data_apply, data_adjoint, dtype):
        # <L x, y> = <x, L^H y>
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint")
        x = data_apply["in_"]["arr"]
        y = data_adjoint["in_"]["arr"]
        lhs = np.vdot(y, op.apply(x))
        rhs = np.vdot(op.H.apply(y), x)
        assert self._metric(lhs, rhs, as_dtype=dtype)

    def test_math_adjoint_involution(self, op):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint")
        assert op.H.H.shape == op.shape
        assert op.T.T.shape == op.shape

    def test_value_conj(self, op, dense, data_apply, dtype):
        self._skip_if_disabled()
        self._skip_unless(op, "has_adjoint")
        x = data_apply["in_"]["arr"]
        out = op.conj().apply(x)
        assert self._metric(out, dense.conj() @ x, as_dtype=dtype)

    def test_value_update_constant(self, op):
        self._skip_if_disabled()
        if not op.isconstant():
            pytest.skip("Operator is not constant.")
        assert op.update_coefficients(None, None, 0.0) is op

    def test_interface_expr(self, op):
        self._skip_if_disabled()
        assert isinstance(op.expr(), str)
