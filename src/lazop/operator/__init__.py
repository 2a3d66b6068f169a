from .basic import (
    IdentityOperator as IdentityOperator,
    NullOperator as NullOperator,
    adjoint as adjoint,
    inv as inv,
    transpose as transpose,
)
from .scalar import (
    AddedScalarOperator as AddedScalarOperator,
    ComposedScalarOperator as ComposedScalarOperator,
    InvertedScalarOperator as InvertedScalarOperator,
    ScalarOperator as ScalarOperator,
)
from .matrix import (
    AddVector as AddVector,
    AffineOperator as AffineOperator,
    DiagonalOperator as DiagonalOperator,
    InvertibleOperator as InvertibleOperator,
    MatrixOperator as MatrixOperator,
    cholesky as cholesky,
    factorize as factorize,
    lu as lu,
    qr as qr,
)
from .function import (
    FunctionOperator as FunctionOperator,
)
from .tensor import (
    TensorProductOperator as TensorProductOperator,
    kron as kron,
)
from .multidim import (
    apply_nd as apply_nd,
    ldiv_inplace_nd as ldiv_inplace_nd,
    ldiv_nd as ldiv_nd,
    mul_nd as mul_nd,
    solve_nd as solve_nd,
)
