import numpy as np
import pytest
import scipy.sparse as sp

import lazop.info.error as lze
import lazop.math.linalg as lzl
import lazop_tests.conftest as ct

Trans = lzl.Trans


class TestTrans:
    @pytest.mark.parametrize(
        ["lhs", "rhs", "out"],
        [
            (Trans.N, Trans.N, Trans.N),
            (Trans.N, Trans.C, Trans.C),
            (Trans.T, Trans.T, Trans.N),
            (Trans.C, Trans.C, Trans.N),
            (Trans.T, Trans.C, Trans.CONJ),
            (Trans.CONJ, Trans.T, Trans.C),
        ],
    )
    def test_compose(self, lhs, rhs, out):
        assert lhs.compose(rhs) == out
        assert rhs.compose(lhs) == out

    def test_flags(self):
        assert not Trans.N.transpose and not Trans.N.conjugate
        assert Trans.C.transpose and Trans.C.conjugate
        assert Trans.CONJ.conjugate and not Trans.CONJ.transpose

    def test_dims(self):
        assert Trans.N.dims((3, 2)) == (3, 2)
        assert Trans.T.dims((3, 2)) == (2, 3)
        assert Trans.C.dims((3, 2)) == (2, 3)
        assert Trans.CONJ.dims((3, 2)) == (3, 2)


class TestPayload:
    def test_from_obj(self):
        assert lzl.Payload.from_obj(np.eye(2)) == lzl.Payload.DENSE
        assert lzl.Payload.from_obj(sp.csr_array(np.eye(2))) == lzl.Payload.SPARSE
        assert lzl.Payload.from_obj(sp.dia_array(np.eye(2))) == lzl.Payload.DIAGONAL
        assert lzl.Payload.from_obj(lzl.LU(np.eye(2))) == lzl.Payload.FACTORIZATION

    def test_from_obj_dask(self):
        da = pytest.importorskip("dask.array")
        assert lzl.Payload.from_obj(da.eye(2)) == lzl.Payload.DASK

    def test_offdiagonal_dia(self):
        A = sp.dia_array((np.ones((1, 3)), [1]), shape=(3, 3))
        assert lzl.Payload.from_obj(A) == lzl.Payload.SPARSE

    def test_as_payload(self):
        A = lzl.as_payload([[1.0, 2.0], [3.0, 4.0]])
        assert isinstance(A, np.ndarray)
        with pytest.raises(lze.ShapeMismatchError):
            lzl.as_payload(np.ones(3))


class TestPrimitives:
    @pytest.fixture(params=[False, True])
    def complex(self, request):
        return request.param

    @pytest.fixture
    def A(self, complex):
        return ct.randn(4, 3, seed=0, complex=complex)

    @pytest.fixture(params=list(Trans))
    def trans(self, request):
        return request.param

    @staticmethod
    def _op(A, trans):
        B = A.T if trans.transpose else A
        return B.conj() if trans.conjugate else B

    def test_axpby(self):
        out = np.ones(3)
        lzl.axpby(out, np.arange(3.0), 2, 3)
        assert np.allclose(out, 2 * np.arange(3) + 3)

        out = np.full(3, np.nan)
        lzl.axpby(out, np.arange(3.0), 2, 0)
        assert np.allclose(out, 2 * np.arange(3))

    def test_matmul(self, A, trans, complex):
        B = self._op(A, trans)
        x = ct.randn(B.shape[1], 2, seed=1, complex=complex)
        assert np.allclose(lzl.matmul(A, x, trans), B @ x)

    @pytest.mark.parametrize("ndim", [1, 2])
    def test_matmul_(self, A, trans, complex, ndim):
        B = self._op(A, trans)
        shape = (B.shape[1],) if (ndim == 1) else (B.shape[1], 2)
        x = ct.randn(*shape, seed=1, complex=complex)
        out = ct.randn(B.shape[0], *shape[1:], seed=2, complex=complex)
        out_gt = 2 * (B @ x) - 0.5 * out

        y = lzl.matmul_(out, A, x, trans, 2, -0.5)
        assert y is out
        assert np.allclose(out, out_gt)

    def test_matmul_diagonal(self):
        d = np.array([1.0, 2.0, 3.0])
        A = sp.dia_array((d[None, :], [0]), shape=(3, 3))
        x = np.ones((3, 2))
        assert np.allclose(lzl.matmul(A, x), d[:, None] * x)

        out = np.zeros((3, 2))
        lzl.matmul_(out, A, x)
        assert np.allclose(out, d[:, None] * x)

    def test_matmul_factorization_raises(self):
        F = lzl.LU(ct.well_conditioned(3))
        with pytest.raises(lze.CapabilityError):
            lzl.matmul(F, np.ones(3))
        with pytest.raises(lze.CapabilityError):
            lzl.matmul_(np.zeros(3), F, np.ones(3))

    def test_solve_dense(self, trans, complex):
        A = ct.well_conditioned(3, seed=3, complex=complex)
        B = self._op(A, trans)
        x = ct.randn(3, seed=4, complex=complex)
        assert np.allclose(lzl.solve(A, x, trans), np.linalg.solve(B, x))

    def test_solve_factorization(self, trans, complex):
        A = ct.well_conditioned(3, seed=3, complex=complex)
        F = lzl.factorize(A)
        B = self._op(A, trans)
        x = ct.randn(3, 2, seed=4, complex=complex)
        assert np.allclose(lzl.solve(F, x, trans), np.linalg.solve(B, x))

        out = np.zeros_like(x)
        lzl.solve_(out, F, x, trans)
        assert np.allclose(out, np.linalg.solve(B, x))

    def test_solve_qr(self, trans, complex):
        A = ct.randn(5, 3, seed=5, complex=complex)
        F = lzl.QR(A)
        B = self._op(A, trans)
        x = ct.randn(B.shape[0], seed=6, complex=complex)
        y_gt = np.linalg.lstsq(B, x, rcond=None)[0]
        assert np.allclose(lzl.solve(F, x, trans), y_gt)

    def test_solve_sparse(self):
        A = ct.well_conditioned(4)
        x = ct.randn(4, 1, seed=1)
        y = lzl.solve(sp.csr_array(A), x)
        assert y.shape == (4, 1)
        assert np.allclose(y, np.linalg.solve(A, x))

    def test_solve_inplace_diagonal(self):
        d = np.array([1.0, -2.0, 4.0])
        A = sp.dia_array((d[None, :], [0]), shape=(3, 3))
        x = np.ones(3)
        lzl.solve_inplace(A, x)
        assert np.allclose(x, 1 / d)

    def test_solve_inplace_dense_raises(self):
        with pytest.raises(lze.CapabilityError):
            lzl.solve_inplace(np.eye(3), np.ones(3))

    def test_solve_singular(self):
        with pytest.raises(lze.NotInvertibleError):
            lzl.solve(np.zeros((3, 3)), np.ones(3))


class TestCapabilities:
    def test_is_zero(self):
        assert lzl.is_zero(np.zeros((2, 2)))
        assert not lzl.is_zero(np.eye(2))
        assert lzl.is_zero(sp.csr_array((3, 3)))
        assert not lzl.is_zero(lzl.LU(np.eye(2)))

    def test_has_solve(self):
        assert lzl.has_solve(np.eye(2))
        assert not lzl.has_solve(np.zeros((2, 2)))
        assert not lzl.has_solve(sp.csr_array(np.ones((3, 2))))
        assert lzl.has_solve(lzl.LU(np.eye(2)))

        D = sp.dia_array((np.array([[1.0, 0.0]]), [0]), shape=(2, 2))
        assert not lzl.has_solve(D)

    def test_has_solve_inplace(self):
        assert not lzl.has_solve_inplace(np.eye(2))
        assert lzl.has_solve_inplace(lzl.LU(np.eye(2)))
        assert lzl.has_solve_inplace(sp.dia_array(np.eye(2)))

    def test_has_mul(self):
        assert lzl.has_mul(np.eye(2))
        assert lzl.has_mul_inplace(sp.csr_array(np.eye(2)))
        assert not lzl.has_mul(lzl.LU(np.eye(2)))


class TestFactorize:
    def test_kinds(self):
        A = ct.well_conditioned(3)
        assert isinstance(lzl.factorize(A), lzl.LU)
        assert isinstance(lzl.factorize(A @ A.T, kind="Cholesky"), lzl.Cholesky)
        assert isinstance(lzl.factorize(ct.randn(4, 2)), lzl.QR)
        assert isinstance(lzl.factorize(sp.csc_array(A)), lzl.SparseLU)

    def test_passthrough(self):
        F = lzl.LU(np.eye(2))
        assert lzl.factorize(F) is F
        D = sp.dia_array(np.eye(2))
        assert lzl.factorize(D) is D

    def test_errors(self):
        with pytest.raises(ValueError):
            lzl.factorize(np.eye(2), kind="svd")
        with pytest.raises(lze.UnsquareError):
            lzl.factorize(np.ones((3, 2)), kind="lu")
        with pytest.raises(lze.ShapeMismatchError):
            lzl.factorize(np.ones((2, 3)), kind="qr")
        with pytest.raises(lze.NotInvertibleError):
            lzl.factorize(np.zeros((2, 2)))

    def test_asarray(self):
        A = ct.randn(4, 2)
        assert np.allclose(lzl.QR(A).asarray(), A)
        assert np.allclose(lzl.to_dense(lzl.QR(A)), A)


class TestToDense:
    def test_dtype(self):
        A = lzl.to_dense(sp.csr_array(np.eye(2)), dtype=np.float32)
        assert isinstance(A, np.ndarray)
        assert A.dtype == np.float32

    def test_zeros(self):
        x = np.ones((3, 2), dtype=np.float32)
        z = lzl.zeros(x, (4, 2), np.float64)
        assert z.shape == (4, 2)
        assert z.dtype == np.float64
        assert not z.any()
