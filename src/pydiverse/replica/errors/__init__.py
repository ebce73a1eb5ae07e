# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause


class ReplicaError(Exception):
    """
    Base class for all exceptions raised while copying an object graph.
    """


class UnsupportedTypeError(ReplicaError, TypeError):
    """
    Exception raised if a value is neither a leaf, an array nor a composite
    with enumerable state, and no pass-through policy applies to it.
    """


class AllocationError(ReplicaError):
    """
    Exception raised if a fresh instance of a type can't be created without
    running its constructor.
    """


class CircularityNotResolvedError(ReplicaError, RecursionError):
    """
    Exception raised if the copy work-stack grows beyond the configured
    maximum depth. For cyclic graphs this can't happen unless a shell
    wasn't registered before its children were visited.
    """


class ConfigError(ReplicaError, ValueError):
    """
    Exception raised when a replica configuration is invalid.
    """


__all__ = [
    "ReplicaError",
    "UnsupportedTypeError",
    "AllocationError",
    "CircularityNotResolvedError",
    "ConfigError",
]
