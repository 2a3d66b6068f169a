# Custom warnings used inside lazop.
import inspect
import warnings


class LazopWarning(UserWarning):
    """
    Parent class of all warnings raised in lazop.
    """


class PerformanceWarning(LazopWarning):
    """
    Use for performance-related warnings.
    """


def warn_dask_perf(msg: str = None):
    """
    Issue a warning for DASK-related performance issues.

    This method is aware of its context and prints the name of the enclosing function/method which invoked it.

    Parameters
    ----------
    msg: str
        Custom warning message.
    """
    if msg is None:
        msg = "Sub-optimal performance for DASK inputs."

    # Get context
    my_frame = inspect.currentframe()
    up_frame = inspect.getouterframes(my_frame)[1]
    header = f"{up_frame.filename}:{up_frame.function}"

    msg = f"[{header}] {msg}"
    warnings.warn(msg, PerformanceWarning)


class PrecisionWarning(LazopWarning):
    """
    Use for precision-related warnings.
    """


class DenseWarning(LazopWarning):
    """
    Use for lazy/sparse-based algos which revert to dense arrays.
    """
