# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Classification of runtime types into leaf, array or composite.

Classification only depends on the type of a value, so every type is
classified once and the resulting :class:`TypeDescriptor` is cached until the
registries change.

Usage:
    @immutable
    class Money:
        ...

    get_classifier().register_passthrough(MyConnection)
"""

from __future__ import annotations

import datetime
import decimal
import enum
import fractions
import io
import mmap
import pathlib
import re
import socket
import threading
import types
import uuid
import weakref
from collections.abc import Iterable
from enum import Enum
from threading import Lock

import numpy as np
from attrs import frozen

from pydiverse.replica._typing import T
from pydiverse.replica.core.arrays import DEFAULT_ARRAY_ADAPTERS, ArrayAdapter
from pydiverse.replica.core.members import MemberLayout, hidden_state_base
from pydiverse.replica.errors import UnsupportedTypeError
from pydiverse.replica.util import qualified_name


class Kind(Enum):
    LEAF = "leaf"
    ARRAY = "array"
    COMPOSITE = "composite"


@frozen
class TypeDescriptor:
    """How values of one runtime type get copied

    ``passthrough`` is set for leaves that aren't immutable, but which are
    shared by reference on purpose (e.g. whitelisted resource handles).
    """

    cls: type
    kind: Kind
    adapter: ArrayAdapter | None = None
    layout: MemberLayout | None = None
    passthrough: bool = False


# Only the exact types; subclasses may carry mutable instance state.
EXACT_LEAF_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    range,
    slice,
    type(NotImplemented),
    type(Ellipsis),
)

# These types and all of their subclasses.
LEAF_BASES: tuple[type, ...] = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.MethodWrapperType,
    types.WrapperDescriptorType,
    types.ModuleType,
    types.CodeType,
    property,
    weakref.ref,
    enum.Enum,
    decimal.Decimal,
    fractions.Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.tzinfo,
    uuid.UUID,
    pathlib.PurePath,
    re.Pattern,
    np.generic,
    np.dtype,
)

# Unmanaged resources that must never be duplicated.
HANDLE_TYPES: tuple[type, ...] = (
    io.IOBase,
    socket.socket,
    mmap.mmap,
    type(threading.Lock()),
    type(threading.RLock()),
    threading.Condition,
    threading.Semaphore,
    threading.Event,
    threading.Thread,
    types.GeneratorType,
    types.CoroutineType,
    types.AsyncGeneratorType,
    types.FrameType,
    types.TracebackType,
)


def _find_in_mro(cls: type, registry: dict[type, T]) -> T | None:
    for base in cls.__mro__:
        if base in registry:
            return registry[base]
    return None


class Classifier:
    """Registry based classification policy

    The leaf predicate and the set of array types can be extended through the
    ``register_*`` methods. :meth:`describe` never returns a descriptor for an
    unsupported type; it raises :class:`UnsupportedTypeError` instead.
    """

    def __init__(self, passthrough_handles: bool = False):
        self._lock = Lock()
        self.passthrough_handles = passthrough_handles
        self._exact_leaves: set[type] = set(EXACT_LEAF_TYPES)
        self._leaf_bases: dict[type, bool] = dict.fromkeys(LEAF_BASES, True)
        self._passthrough: dict[type, bool] = {}
        self._adapters: dict[type, ArrayAdapter] = dict(DEFAULT_ARRAY_ADAPTERS)
        self._cache: dict[type, TypeDescriptor] = {}
        self._generation = 0

    def copy(self, passthrough_handles: bool | None = None) -> Classifier:
        """Independent classifier starting out with the same registrations"""
        other = Classifier(
            passthrough_handles=self.passthrough_handles if passthrough_handles is None else passthrough_handles
        )
        with self._lock:
            other._exact_leaves = set(self._exact_leaves)
            other._leaf_bases = dict(self._leaf_bases)
            other._passthrough = dict(self._passthrough)
            other._adapters = dict(self._adapters)
        return other

    @property
    def generation(self) -> int:
        """Incremented by every registration"""
        return self._generation

    def _invalidate(self):
        self._cache.clear()
        self._generation += 1

    # Registration

    def register_leaf(self, cls: type, include_subclasses: bool = True) -> type:
        """Declare values of ``cls`` immutable, so they are shared instead of copied"""
        with self._lock:
            if include_subclasses:
                self._leaf_bases[cls] = True
            else:
                self._exact_leaves.add(cls)
            self._invalidate()
        return cls

    def register_passthrough(self, cls: type) -> type:
        """Share values of ``cls`` (and subclasses) by reference, even though they are mutable"""
        with self._lock:
            self._passthrough[cls] = True
            self._invalidate()
        return cls

    def register_array_adapter(self, cls: type, adapter: ArrayAdapter) -> type:
        """Copy ``cls`` (and subclasses) element by element using ``adapter``"""
        with self._lock:
            self._adapters[cls] = adapter
            self._invalidate()
        return cls

    def register_many(self, leaf_types: Iterable[type] = (), passthrough_types: Iterable[type] = ()):
        for cls in leaf_types:
            self.register_leaf(cls)
        for cls in passthrough_types:
            self.register_passthrough(cls)

    # Classification

    def is_leaf(self, cls: type) -> bool:
        return self.describe(cls).kind is Kind.LEAF

    def describe(self, cls: type) -> TypeDescriptor:
        """Classify ``cls``

        :raises UnsupportedTypeError: If values of ``cls`` are neither leaves,
            arrays nor composites with enumerable state.
        """
        try:
            return self._cache[cls]
        except KeyError:
            pass

        with self._lock:
            # classify while holding the lock, so a concurrent registration
            # can't be overwritten by a stale descriptor
            descriptor = self._classify(cls)
            self._cache[cls] = descriptor
        return descriptor

    def _classify(self, cls: type) -> TypeDescriptor:
        if cls in self._exact_leaves or _find_in_mro(cls, self._leaf_bases):
            return TypeDescriptor(cls, Kind.LEAF)
        if _find_in_mro(cls, self._passthrough):
            return TypeDescriptor(cls, Kind.LEAF, passthrough=True)
        if issubclass(cls, HANDLE_TYPES):
            if self.passthrough_handles:
                return TypeDescriptor(cls, Kind.LEAF, passthrough=True)
            raise UnsupportedTypeError(
                f"Values of type {qualified_name(cls)} are resource handles and can't be copied."
                " Enable `passthrough_handles` or register the type as pass-through to share"
                " them by reference."
            )

        layout = MemberLayout(cls)
        if adapter := _find_in_mro(cls, self._adapters):
            return TypeDescriptor(cls, Kind.ARRAY, adapter=adapter, layout=layout)
        if layout.is_empty and cls is not object:
            raise UnsupportedTypeError(
                f"Values of type {qualified_name(cls)} don't expose their state through __dict__,"
                " __slots__ or a supported container base and can't be copied."
            )
        if (base := hidden_state_base(cls)) is not None:
            raise UnsupportedTypeError(
                f"Values of type {qualified_name(cls)} keep state in their builtin base {qualified_name(base)}"
                " that isn't reachable as a member and can't be copied."
            )
        return TypeDescriptor(cls, Kind.COMPOSITE, layout=layout)


# Module-level classifier instance
_classifier = Classifier()


def get_classifier() -> Classifier:
    """Access the process-wide default classifier."""
    return _classifier


def register_leaf(cls: type, include_subclasses: bool = True) -> type:
    return _classifier.register_leaf(cls, include_subclasses=include_subclasses)


def register_passthrough(cls: type) -> type:
    return _classifier.register_passthrough(cls)


def register_array_adapter(cls: type, adapter: ArrayAdapter) -> type:
    return _classifier.register_array_adapter(cls, adapter)


def immutable(cls: type[T]) -> type[T]:
    """Class decorator declaring a type copy-transparent

    >>> @immutable
    ... @dataclass(frozen=True)
    ... class Currency:
    ...     code: str
    """
    return register_leaf(cls)
