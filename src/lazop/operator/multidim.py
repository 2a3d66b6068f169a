"""
Evaluation of operators on N-D arrays.

Operators act on (N,) or (N, K) arrays.  The functions below accept arrays of shape (N, *batch) with any number of
batch dimensions: inputs are flattened to (N, prod(batch)), evaluated, then reshaped back.

Example
-------
.. code-block:: python3

   import numpy as np
   import lazop.operator as lzo

   D = lzo.DiagonalOperator(np.arange(1.0, 4.0))
   u = np.ones((3, 2, 5))
   lzo.apply_nd(D, u).shape  # (3, 2, 5)
"""

import lazop.info.error as lze
import lazop.info.ptype as lzt
import lazop.util as lzu

__all__ = [
    "apply_nd",
    "solve_nd",
    "mul_nd",
    "ldiv_nd",
    "ldiv_inplace_nd",
]


def _flatten(op: lzt.OpT, arr: lzt.NDArray, n: lzt.Integer) -> lzt.NDArray:
    if (arr.ndim == 0) or ((n is not None) and (arr.shape[0] != n)):
        raise lze.shape_mismatch(op, f"({n}, ...)", arr.shape)
    return arr.reshape(arr.shape[0], -1)


def _view(op: lzt.OpT, out: lzt.NDArray, arr: lzt.NDArray, n: lzt.Integer) -> lzt.NDArray:
    sh = (arr.shape[0] if (n is None) else n, *arr.shape[1:])
    if tuple(out.shape) != sh:
        raise lze.shape_mismatch(op, sh, out.shape)
    y = out.reshape(out.shape[0], -1)
    if (out.size > 0) and (not lzu.get_array_module(out).may_share_memory(y, out)):
        # writes to `y` would not reach `out`
        msg = f"{type(op).__name__}: {out.shape} buffer cannot be flattened without a copy; pass a C-contiguous buffer."
        raise lze.ShapeMismatchError(msg)
    return y


def apply_nd(op: lzt.OpT, arr: lzt.NDArray) -> lzt.NDArray:
    """
    Evaluate `op` on a (N, *batch) array.

    Returns
    -------
    out: NDArray
        (M, *batch) output.
    """
    x = _flatten(op, arr, op.dim)
    y = op.apply(x)
    return y.reshape(y.shape[0], *arr.shape[1:])


def solve_nd(op: lzt.OpT, arr: lzt.NDArray) -> lzt.NDArray:
    """
    Solve with `op` on a (M, *batch) array.
    """
    x = _flatten(op, arr, op.codim)
    y = op.solve(x)
    return y.reshape(y.shape[0], *arr.shape[1:])


def mul_nd(
    op: lzt.OpT,
    out: lzt.NDArray,
    arr: lzt.NDArray,
    alpha: lzt.Number = 1,
    beta: lzt.Number = 0,
) -> lzt.NDArray:
    r"""
    In-place evaluation :math:`\text{out} \leftarrow \alpha\, \text{op}(x) + \beta\, \text{out}` on (N, *batch)
    arrays.

    `op` must have been cached for (N, prod(batch)) inputs.  `out` must be contiguous.
    """
    x = _flatten(op, arr, op.dim)
    y = _view(op, out, arr, op.codim)
    op.mul(y, x, alpha, beta)
    return out


def ldiv_nd(op: lzt.OpT, out: lzt.NDArray, arr: lzt.NDArray) -> lzt.NDArray:
    """
    In-place solve on (M, *batch) arrays.  `out` must be contiguous.
    """
    x = _flatten(op, arr, op.codim)
    y = _view(op, out, arr, op.dim)
    op.ldiv(y, x)
    return out


def ldiv_inplace_nd(op: lzt.OpT, arr: lzt.NDArray) -> lzt.NDArray:
    """
    Overwriting solve on (N, *batch) arrays.  `arr` must be contiguous.
    """
    x = _view(op, arr, arr, op.codim)
    op.ldiv_inplace(x)
    return arr
