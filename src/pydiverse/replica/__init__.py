# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause

# In order to avoid circular dependencies, we use the following import order:
# - Identity (no dependencies)
# - Core: arrays, members, classification, allocation
# - Config (needs the classifier)
# - Engine (needs config and core)

# isort: skip_file
from .identity import (
    IdentityComparer,
    IdentityDict,
    IdentitySet,
    identity_equals,
    identity_hash,
)
from .core import (
    ArrayAdapter,
    Classifier,
    DeepCopyEngine,
    Kind,
    deep_copy,
    get_classifier,
    immutable,
    register_array_adapter,
    register_leaf,
    register_passthrough,
)
from .config import ReplicaConfig
from . import errors

__all__ = [
    "deep_copy",
    "DeepCopyEngine",
    "ReplicaConfig",
    "IdentityComparer",
    "IdentityDict",
    "IdentitySet",
    "identity_equals",
    "identity_hash",
    "ArrayAdapter",
    "Classifier",
    "Kind",
    "get_classifier",
    "immutable",
    "register_array_adapter",
    "register_leaf",
    "register_passthrough",
    "errors",
]
