# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations

import builtins
import importlib


def import_object(import_path: str):
    """Loads an object given an import path

    >>> # An import statement like this
    >>> from decimal import Decimal
    >>> # can be expressed as follows:
    >>> import_object("decimal.Decimal")
    """

    parts = [part for part in import_path.split(".") if part]
    module, n = None, 0

    while n < len(parts):
        try:
            module = importlib.import_module(".".join(parts[: n + 1]))
            n = n + 1
        except ImportError:
            break

    obj = module or builtins
    for part in parts[n:]:
        obj = getattr(obj, part)

    return obj


def import_type(import_path: str) -> type:
    """Like :func:`import_object`, but the result must be a class."""
    obj = import_object(import_path)
    if not isinstance(obj, type):
        raise TypeError(f"'{import_path}' refers to {obj!r}, which is not a class")
    return obj
