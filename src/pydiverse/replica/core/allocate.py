# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Allocation of fresh instances without running constructors.

This mirrors what ``copyreg`` does when unpickling: the instance is created by
the ``__new__`` of the nearest builtin base class, which knows nothing about
the Python-level ``__new__`` and ``__init__`` of the concrete class.
"""

from __future__ import annotations

import structlog

from pydiverse.replica.errors import AllocationError
from pydiverse.replica.util import qualified_name

# Immutable builtins whose value is fixed at allocation time
PAYLOAD_BASES = (int, float, complex, str, bytes)


# Set on every class created by a class statement or `type(...)`
_HEAPTYPE = 1 << 9
_new_type = type(int.__new__)


def native_base(cls: type) -> type:
    """The first class in the MRO that allocates its instances in C

    Same rule as `copyreg._reduce_ex`: either a static builtin type, or a
    type that brings its own C-level `__new__`.
    """
    for base in cls.__mro__:
        if not base.__flags__ & _HEAPTYPE:
            return base
        new = base.__new__
        if isinstance(new, _new_type) and new.__self__ is base:
            return base
    return object


def allocate(obj, construct_fallback: bool = False):
    """Allocate an uninitialized instance of ``type(obj)``

    :param obj: The original object. Only used for its type and, for
        subclasses of immutable builtins, for its payload.
    :param construct_fallback: If raw allocation fails, try calling the class
        without arguments before giving up.
    :raises AllocationError: If no instance could be created.
    """
    cls = type(obj)
    base = native_base(cls)
    try:
        if base in PAYLOAD_BASES:
            # the base's own __getnewargs__ ignores overridden __str__, __int__, ...
            return base.__new__(cls, *base.__getnewargs__(obj))
        return base.__new__(cls)
    except Exception as e:
        if not construct_fallback:
            raise AllocationError(
                f"Can't allocate instance of {qualified_name(cls)} without calling its constructor"
                f" (native base {qualified_name(base)})"
            ) from e
        error = e

    logger = structlog.get_logger(__name__ + ".allocate")
    logger.debug(
        "Raw allocation failed, falling back to constructor",
        cls=qualified_name(cls),
        error=str(error),
    )
    try:
        return cls()
    except Exception as e:
        raise AllocationError(
            f"Can't allocate instance of {qualified_name(cls)}: raw allocation failed with"
            f" {error!r} and calling {cls.__name__}() failed as well"
        ) from e
