import numpy as np
import pytest

import lazop.util as lzu


class TestGetArrayModule:
    def test_array(self, xp):
        x = xp.arange(5)
        assert lzu.get_array_module(x) is xp

    @pytest.mark.parametrize(
        ["obj", "fallback", "fail"],
        [
            [None, None, True],
            [None, np, False],
            [1, None, True],
            [1, np, False],
        ],
    )
    def test_fallback(self, obj, fallback, fail):
        # object is not an array type, so fail or return provided fallback
        if not fail:
            assert lzu.get_array_module(obj, fallback) is fallback
        else:
            with pytest.raises(ValueError):
                assert lzu.get_array_module(obj, fallback)


class TestCompute:
    def test_passthrough(self):
        x = np.arange(3)
        assert np.array_equal(lzu.compute(x), x)
        assert lzu.compute(2.0) == 2.0

    def test_dask(self):
        da = pytest.importorskip("dask.array")
        x = da.arange(4, chunks=2)
        y = lzu.compute(x)
        assert isinstance(y, np.ndarray)
        assert np.array_equal(y, np.arange(4))

    def test_mode(self):
        with pytest.raises(ValueError):
            lzu.compute(np.ones(2), mode="eval")


class TestToNumpy:
    def test_value(self, xp):
        x = xp.arange(4)
        y = lzu.to_NUMPY(x)
        assert isinstance(y, np.ndarray)
        assert np.array_equal(y, np.arange(4))
