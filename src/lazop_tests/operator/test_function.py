import numpy as np
import pytest

import lazop.info.error as lze
import lazop.operator as lzo
import lazop_tests.conftest as ct
import lazop_tests.operator.conftest as conftest


def matrix_free(A: np.ndarray, inplace: bool = False, **kwargs) -> lzo.FunctionOperator:
    # FunctionOperator mimicking `A`, with all actions defined.
    M, N = A.shape
    Ainv = np.linalg.inv(A)
    if inplace:

        def op(v, u, p, t):
            v[...] = A @ u

        def op_adjoint(v, u, p, t):
            v[...] = A.conj().T @ u

        def op_inverse(v, u, p, t):
            v[...] = Ainv @ u

        def op_adjoint_inverse(v, u, p, t):
            v[...] = Ainv.conj().T @ u

    else:
        op = lambda u, p, t: A @ u
        op_adjoint = lambda u, p, t: A.conj().T @ u
        op_inverse = lambda u, p, t: Ainv @ u
        op_adjoint_inverse = lambda u, p, t: Ainv.conj().T @ u

    return lzo.FunctionOperator(
        op,
        np.zeros(N, dtype=A.dtype),
        np.zeros(M, dtype=A.dtype),
        op_adjoint=op_adjoint,
        op_inverse=op_inverse,
        op_adjoint_inverse=op_adjoint_inverse,
        **kwargs,
    )


class TestFunctionOperator(conftest.OperatorT):
    @pytest.fixture
    def dense(self):
        return ct.well_conditioned(5, seed=0)

    @pytest.fixture
    def op(self, dense):
        return matrix_free(dense)


class TestFunctionOperatorInplace(conftest.OperatorT):
    @pytest.fixture
    def dense(self):
        return ct.well_conditioned(4, seed=1)

    @pytest.fixture
    def op(self, dense):
        return matrix_free(dense, inplace=True)


class TestFunctionOperatorComplex(conftest.OperatorT):
    @pytest.fixture
    def dense(self):
        return ct.well_conditioned(3, seed=2, complex=True)

    @pytest.fixture
    def op(self, dense):
        return matrix_free(dense)


class TestFunctionOperatorForwardOnly(conftest.OperatorT):
    @pytest.fixture
    def dense(self):
        return ct.randn(4, 3, seed=3)

    @pytest.fixture
    def op(self, dense):
        return lzo.FunctionOperator(
            lambda u, p, t: dense @ u,
            np.zeros(3),
            np.zeros(4),
            isconstant=True,
        )

    def test_value_capabilities(self, op):
        assert not op.has_adjoint()
        assert not op.has_ldiv()

    def test_adjoint_raises(self, op):
        with pytest.raises(lze.CapabilityError):
            op.H

    def test_solve_raises(self, op):
        with pytest.raises(lze.CapabilityError):
            op.solve(np.ones(4))


class TestFunctionOperatorMisc:
    def test_arity(self):
        with pytest.raises(ValueError):
            lzo.FunctionOperator(lambda u: u, np.zeros(3), np.zeros(3))

    def test_value_params(self):
        L = lzo.FunctionOperator(lambda u, p, t: p * u, np.zeros(3), np.zeros(3), p=2.0)
        x = np.ones(3)
        assert np.allclose(L @ x, 2)

        L2 = L.update_coefficients(None, 3.0, 0.0)
        assert np.allclose(L2 @ x, 3)
        assert np.allclose(L @ x, 2)

        L.update_coefficients_inplace(None, 4.0, 0.0)
        assert np.allclose(L @ x, 4)

    def test_value_time(self):
        L = lzo.FunctionOperator(lambda u, p, t: t * u, np.zeros(2), np.zeros(2), t=0.0)
        L = L.update_coefficients(None, None, 5.0)
        assert np.allclose(L @ np.ones(2), 5)

    def test_value_constant(self):
        L = lzo.FunctionOperator(lambda u, p, t: p * u, np.zeros(3), np.zeros(3), p=2.0, isconstant=True)
        assert L.update_coefficients(None, 3.0, 0.0) is L
        L.update_coefficients_inplace(None, 3.0, 0.0)
        assert np.allclose(L @ np.ones(3), 2)

    def test_value_hermitian(self):
        A = ct.randn(3, 3, seed=0)
        A = A + A.T
        L = lzo.FunctionOperator(lambda u, p, t: A @ u, np.zeros(3), np.zeros(3), ishermitian=True)
        assert L.has_adjoint()

        x = ct.randn(3, seed=1)
        assert np.allclose(L.H @ x, A @ x)

    def test_value_symmetric(self):
        A = np.diag([1.0, 2.0])
        L = lzo.FunctionOperator(lambda u, p, t: A @ u, np.zeros(2), np.zeros(2), issymmetric=True)
        assert L.has_adjoint()

    def test_value_swap(self):
        A = ct.well_conditioned(3)
        L = matrix_free(A)
        x = ct.randn(3, seed=2)

        Li = L.inv()
        assert isinstance(Li, lzo.FunctionOperator)
        assert np.allclose(Li @ x, np.linalg.solve(A, x))
        assert np.allclose(Li.solve(x), A @ x)

        LH = L.H
        assert isinstance(LH, lzo.FunctionOperator)
        assert np.allclose(LH.solve(x), np.linalg.solve(A.T, x))

    def test_value_inverse_missing(self):
        L = lzo.FunctionOperator(lambda u, p, t: 2 * u, np.zeros(3), np.zeros(3))
        Li = L.inv()
        assert not Li.has_mul()
        with pytest.raises(lze.CapabilityError):
            Li.apply(np.ones(3))

    def test_value_resize(self):
        L = lzo.FunctionOperator(lambda u, p, t: 2 * u, np.zeros(3), np.zeros(3))
        L.cache_operator(np.zeros(3))
        L.resize(5)
        assert L.shape == (5, 5)
        assert L.iscached()

        x = np.arange(5.0)
        out = np.ones(5)
        L.mul(out, x, alpha=1, beta=1)
        assert np.allclose(out, 2 * x + 1)

    def test_resize_rect_raises(self):
        L = lzo.FunctionOperator(lambda u, p, t: u[:2], np.zeros(3), np.zeros(2))
        with pytest.raises(lze.CapabilityError):
            L.resize(4)

    def test_cache_batch(self):
        # scratch is tied to the batch shape it was allocated for.
        L = matrix_free(ct.well_conditioned(3))
        L.cache_operator(np.zeros(3))
        with pytest.raises(lze.CacheError):
            L.mul(np.zeros((3, 2)), np.ones((3, 2)), alpha=2)
