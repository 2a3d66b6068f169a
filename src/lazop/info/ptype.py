import collections.abc as cabc
import numbers as nb
import typing as typ

import numpy.typing as npt

import lazop.info.deps as lzd

if typ.TYPE_CHECKING:
    import lazop.abc.operator as lzo

#: Supported dense array types.
NDArray = typ.TypeVar("NDArray", *lzd.supported_array_types())

#: Supported dense array modules.
ArrayModule = typ.TypeVar(
    "ArrayModule",
    *[typ.Literal[_] for _ in lzd.supported_array_modules()],
)

#: Supported sparse array types.
if len(sst := lzd.supported_sparse_types()) == 1:
    SparseArray = typ.TypeVar("SparseArray", bound=tuple(sst)[0])
else:
    SparseArray = typ.TypeVar("SparseArray", *sst)

#: Top-level abstract :py:class:`~lazop.abc.Operator` interface exposed to users.
OpT = typ.TypeVar("OpT", bound="lzo.Operator")

#: :py:class:`~lazop.abc.Operator` hierarchy class type.
OpC = typ.Type[OpT]

#: Scalar-valued operators.
ScalarOpT = typ.TypeVar("ScalarOpT", bound="lzo.ScalarOperatorBase")

#: Capabilities attached to :py:class:`~lazop.abc.Operator` objects.
Property = "lzo.Property"

#: Coefficient update callable ``(coefficient, u, p, t) -> coefficient``.
UpdateFunc = cabc.Callable[..., typ.Any]

Integer = nb.Integral
Real = nb.Real  #: Alias of :py:class:`numbers.Real`.
Number = nb.Number  #: Alias of :py:class:`numbers.Number`.
DType = npt.DTypeLike  #: :py:attr:`~lazop.info.ptype.NDArray` dtype specifier.
OpShape = tuple[Integer, Integer]  #: (codim, dim) operator shape.
NDArrayShape = typ.Union[Integer, tuple[Integer, ...]]  #: :py:attr:`~lazop.info.ptype.NDArray` shape specifier.
