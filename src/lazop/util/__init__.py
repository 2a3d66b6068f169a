from .array_module import (
    compute as compute,
    get_array_module as get_array_module,
    to_NUMPY as to_NUMPY,
)
from .inspect import (
    arity as arity,
)
from .operator import (
    infer_composition_shape as infer_composition_shape,
    infer_kron_shape as infer_kron_shape,
    infer_sum_shape as infer_sum_shape,
)
