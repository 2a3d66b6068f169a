from .linalg import (
    Trans as Trans,
    factorize as factorize,
)
