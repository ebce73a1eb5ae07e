# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause

# isort: skip_file
from .arrays import ArrayAdapter, iter_indices
from .members import Member, MemberLayout
from .classify import (
    Classifier,
    Kind,
    TypeDescriptor,
    get_classifier,
    immutable,
    register_array_adapter,
    register_leaf,
    register_passthrough,
)
from .allocate import allocate
from .engine import DeepCopyEngine, deep_copy

__all__ = [
    "ArrayAdapter",
    "iter_indices",
    "Member",
    "MemberLayout",
    "Classifier",
    "Kind",
    "TypeDescriptor",
    "get_classifier",
    "immutable",
    "register_array_adapter",
    "register_leaf",
    "register_passthrough",
    "allocate",
    "DeepCopyEngine",
    "deep_copy",
]
