from .operator import (
    DEFAULT_UPDATE_FUNC as DEFAULT_UPDATE_FUNC,
    Operator as Operator,
    Property as Property,
    ScalarOperatorBase as ScalarOperatorBase,
)
from .arithmetic import (
    AddedOperator as AddedOperator,
    AdjointOperator as AdjointOperator,
    ComposedOperator as ComposedOperator,
    InvertedOperator as InvertedOperator,
    ScaledOperator as ScaledOperator,
    TransposedOperator as TransposedOperator,
)
