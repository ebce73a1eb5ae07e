# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations


def qualified_name(cls: type) -> str:
    """Fully qualified name of a class, as used in logs and error messages

    Builtins are rendered without their module prefix.
    """
    module = getattr(cls, "__module__", None)
    qualname = getattr(cls, "__qualname__", None) or getattr(cls, "__name__", repr(cls))
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"


def mangle_private_name(cls: type, name: str) -> str:
    """Applies python's private name mangling

    Inside a class body, ``__name`` gets stored as ``_ClassName__name``.
    Names that end with two underscores are left untouched, and so are
    names of classes that consist only of underscores.
    """
    if not name.startswith("__") or name.endswith("__"):
        return name
    class_name = cls.__name__.lstrip("_")
    if not class_name:
        return name
    return f"_{class_name}{name}"
