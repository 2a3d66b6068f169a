import collections.abc as cabc
import inspect
import types
import typing as typ

import numpy as np
import pytest

import lazop.info.deps as lzd
import lazop.info.ptype as lzt
import lazop.runtime as lzrt
import lazop.util as lzu


@pytest.fixture(params=lzd.supported_array_modules())
def xp(request) -> types.ModuleType:
    return request.param


@pytest.fixture(params=lzrt.Width)
def width(request) -> lzrt.Width:
    return request.param


def isclose(
    a: typ.Union[lzt.Real, lzt.NDArray],
    b: typ.Union[lzt.Real, lzt.NDArray],
    as_dtype: lzt.DType,
) -> lzt.NDArray:
    """
    Equivalent of `xp.isclose`, but where atol is automatically chosen based on `as_dtype`.

    This function always returns a computed array, i.e. NumPy/CuPy output.
    """
    atol = {
        lzrt.Width.SINGLE.value: 2e-4,
        lzrt.CWidth.SINGLE.value: 2e-4,
        lzrt.Width.DOUBLE.value: 1e-8,
        lzrt.CWidth.DOUBLE.value: 1e-8,
    }
    # Numbers obtained by:
    # * \sum_{k >= (p+1)//2} 2^{-k}, where p=<number of mantissa bits>; then
    # * round up value to 3 significant decimal digits.

    prec = atol.get(np.dtype(as_dtype), 1e-8)  # default only should occur for integer types
    eq = np.isclose(lzu.compute(a), lzu.compute(b), atol=prec)
    return eq


def allclose(
    a: lzt.NDArray,
    b: lzt.NDArray,
    as_dtype: lzt.DType,
) -> bool:
    """
    Equivalent of `all(isclose)`, but where atol is automatically chosen based on `as_dtype`.
    """
    return bool(np.all(isclose(a, b, as_dtype)))


def rng(seed: int = 0) -> np.random.Generator:
    return np.random.default_rng(seed)


def randn(*shape, seed: int = 0, complex: bool = False) -> np.ndarray:
    r = rng(seed)
    x = r.standard_normal(shape)
    if complex:
        x = x + 1j * r.standard_normal(shape)
    return x


def well_conditioned(N: int, seed: int = 0, complex: bool = False) -> np.ndarray:
    # diagonally-dominant (N, N) matrix
    A = randn(N, N, seed=seed, complex=complex)
    return A + N * np.eye(N)


class DisableTestMixin:
    """
    Disable certain tests based on user black-list.

    Example
    -------
    .. code-block:: python3

       class TestMyOperator(DisableTestMixin):
           disable_test = {"test_1"}

           def test_1(self):
               self._skip_if_disabled()
               assert False  # skipped
    """

    disable_test: cabc.Set[str] = frozenset()

    def _skip_if_disabled(self):
        # Get name of function which invoked me.
        my_frame = inspect.currentframe()
        up_frame = inspect.getouterframes(my_frame)[1].frame
        up_fname = inspect.getframeinfo(up_frame).function
        if up_fname in self.disable_test:
            pytest.skip("disabled test")
