import lazop.info.error as lze
import lazop.info.ptype as lzt

__all__ = [
    "infer_composition_shape",
    "infer_kron_shape",
    "infer_sum_shape",
]


def infer_composition_shape(sh1: lzt.OpShape, sh2: lzt.OpShape) -> lzt.OpShape:
    A, B, C, D = *sh1, *sh2
    if B == C:
        return (A, D)
    else:
        raise lze.ShapeMismatchError(f"Composition of {sh1} and {sh2} operators forbidden.")


def infer_sum_shape(sh1: lzt.OpShape, sh2: lzt.OpShape) -> lzt.OpShape:
    if tuple(sh1) == tuple(sh2):
        return tuple(sh1)
    else:
        raise lze.ShapeMismatchError(f"Addition of {sh1} and {sh2} operators forbidden.")


def infer_kron_shape(sh1: lzt.OpShape, sh2: lzt.OpShape) -> lzt.OpShape:
    if (len(sh1) != 2) or (len(sh2) != 2):
        raise lze.ShapeMismatchError(f"Tensor product of {sh1} and {sh2} operators forbidden.")
    return (sh1[0] * sh2[0], sh1[1] * sh2[1])
