import collections.abc as cabc
import inspect

__all__ = [
    "arity",
]


def arity(func: cabc.Callable) -> int:
    """
    Number of positional parameters a callable accepts.

    Parameters with default values are not counted.  Callables accepting ``*args`` report -1.

    Example
    -------
    .. code-block:: python3

       arity(lambda u, p, t: u)           # 3
       arity(lambda v, u, p, t: None)     # 4
       arity(lambda *args: None)          # -1
    """
    sig = inspect.signature(func)
    n = 0
    for p in sig.parameters.values():
        if p.kind == p.VAR_POSITIONAL:
            return -1
        elif p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and (p.default is p.empty):
            n += 1
    return n
