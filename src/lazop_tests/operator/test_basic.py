import numpy as np
import pytest

import lazop.info.error as lze
import lazop.operator as lzo
import lazop.runtime as lzrt
import lazop_tests.operator.conftest as conftest


class TestIdentityOperator(conftest.OperatorT):
    @pytest.fixture(params=[1, 4])
    def N(self, request) -> int:
        return request.param

    @pytest.fixture
    def op(self, N):
        return lzo.IdentityOperator(N)

    @pytest.fixture
    def dense(self, N):
        return np.eye(N)

    def test_value_structural(self, op):
        assert op.H is op
        assert op.T is op
        assert op.inv() is op
        assert op.conj() is op

    def test_value_apply_copies(self, op, N):
        x = np.arange(N, dtype=float)
        y = op.apply(x)
        assert y is not x
        assert np.array_equal(y, x)

    def test_value_resize(self, op):
        op.resize(6)
        assert op.shape == (6, 6)
        x = np.arange(6.0)
        assert np.array_equal(op @ x, x)

    @pytest.mark.parametrize("width", lzrt.Width)
    def test_precCM_asarray(self, op, width):
        with lzrt.Precision(width):
            A = op.asarray()
        assert A.dtype == width.value

    def test_value_dtype(self, op):
        # identities never promote
        assert op.dtype == np.dtype(bool)


class TestNullOperator(conftest.OperatorT):
    @pytest.fixture
    def op(self):
        return lzo.NullOperator(3)

    @pytest.fixture
    def dense(self):
        return np.zeros((3, 3))

    def test_value_iszero(self, op):
        assert op.iszero()
        assert not op.has_ldiv()

    def test_solve_raises(self, op):
        with pytest.raises(lze.NotInvertibleError):
            op.solve(np.ones(3))

    def test_value_mul_beta(self, op):
        out = np.ones(3)
        op.mul(out, np.ones(3), alpha=2, beta=3)
        assert np.allclose(out, 3)

    def test_value_resize(self, op):
        op.resize(5)
        assert np.array_equal(op @ np.ones(5), np.zeros(5))


class TestHelpers:
    @pytest.fixture
    def op(self):
        rng = np.random.default_rng(0)
        return lzo.MatrixOperator(rng.standard_normal((4, 3)))

    def test_adjoint(self, op):
        assert lzo.adjoint(op).shape == (3, 4)
        assert lzo.adjoint(lzo.adjoint(op)) is op

    def test_transpose(self, op):
        assert lzo.transpose(op).shape == (3, 4)
        assert lzo.transpose(lzo.transpose(op)) is op

    def test_inv(self, op):
        assert lzo.inv(op).shape == (3, 4)
        assert lzo.inv(lzo.inv(op)) is op
