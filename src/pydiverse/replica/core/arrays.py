# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Rank generic access to array-like containers.

An adapter describes the shape of an array and gives indexed access to every
element, addressed by a full N-dimensional index tuple. Mutable arrays get a
pre-allocated shell which is filled element by element. Frozen arrays (tuple,
frozenset) can only be built once all their elements are known.
"""

from __future__ import annotations

import array as _array
import itertools
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterator, Sequence
from typing import Any

import numpy as np

from pydiverse.replica._typing import Index
from pydiverse.replica.errors import UnsupportedTypeError
from pydiverse.replica.util import qualified_name


def iter_indices(shape: Sequence[int]) -> Iterator[Index]:
    """All valid index tuples for ``shape``, in row-major order.

    Every index is produced exactly once. A rank 0 shape has one index ``()``.
    """
    return itertools.product(*(range(length) for length in shape))


class ArrayAdapter(ABC):
    """Array introspection for one family of container types"""

    #: Frozen arrays are built from their copied elements via :meth:`build`.
    #: All others get a shell from :meth:`allocate` that is filled via :meth:`set`.
    frozen: bool = False

    @abstractmethod
    def shape(self, array) -> tuple[int, ...]:
        """Length along each dimension. The rank is ``len(shape)``."""

    @abstractmethod
    def get(self, array, index: Index) -> Any: ...

    def items(self, array) -> Iterator[tuple[Index, Any]]:
        """``(index, element)`` for every valid index of ``array``"""
        for index in iter_indices(self.shape(array)):
            yield index, self.get(array, index)

    def holds_leaves(self, array) -> bool:
        """True if all elements are immutable by construction.

        In that case :meth:`allocate` already returns a populated copy and the
        elements don't need to be visited.
        """
        return False

    def allocate(self, array):
        """New array of the same type and shape; element values are undefined"""
        raise NotImplementedError(f"{type(self).__name__} is frozen and can't allocate a shell")

    def set(self, shell, index: Index, value):
        raise NotImplementedError(f"{type(self).__name__} is frozen and can't be assigned to")

    def build(self, array, values: list) -> Any:
        """Create a frozen array from copied elements given in :meth:`items` order"""
        raise NotImplementedError(f"{type(self).__name__} is not frozen")


class NumpyArrayAdapter(ArrayAdapter):
    """numpy arrays of any rank

    Only arrays with ``object`` dtype can reference mutable objects. Arrays of
    every other dtype contain plain values and are copied as a buffer.
    """

    def shape(self, array: np.ndarray) -> tuple[int, ...]:
        return tuple(array.shape)

    def get(self, array: np.ndarray, index: Index):
        return array[index]

    def items(self, array: np.ndarray):
        for index in np.ndindex(*array.shape):
            yield index, array[index]

    def holds_leaves(self, array: np.ndarray) -> bool:
        return array.dtype != np.dtype(object)

    def allocate(self, array: np.ndarray) -> np.ndarray:
        if array.dtype.hasobject and array.dtype != np.dtype(object):
            raise UnsupportedTypeError(
                f"Can't copy numpy array with structured dtype {array.dtype} that contains object fields"
            )
        if self.holds_leaves(array):
            return np.copy(array, order="K", subok=True)
        return np.empty_like(array, order="K", subok=True)

    def set(self, shell: np.ndarray, index: Index, value):
        shell[index] = value


class ListAdapter(ArrayAdapter):
    """``list`` and its subclasses, rank 1"""

    def shape(self, array: list) -> tuple[int, ...]:
        return (list.__len__(array),)

    def get(self, array: list, index: Index):
        return list.__getitem__(array, index[0])

    def items(self, array: list):
        for i, element in enumerate(list.__iter__(array)):
            yield (i,), element

    def allocate(self, array: list) -> list:
        shell = list.__new__(type(array))
        list.extend(shell, itertools.repeat(None, list.__len__(array)))
        return shell

    def set(self, shell: list, index: Index, value):
        list.__setitem__(shell, index[0], value)


class DequeAdapter(ArrayAdapter):
    """``collections.deque``, rank 1; the ``maxlen`` bound is kept"""

    def shape(self, array: deque) -> tuple[int, ...]:
        return (deque.__len__(array),)

    def get(self, array: deque, index: Index):
        return deque.__getitem__(array, index[0])

    def items(self, array: deque):
        for i, element in enumerate(deque.__iter__(array)):
            yield (i,), element

    def allocate(self, array: deque) -> deque:
        shell = deque.__new__(type(array))
        deque.__init__(shell, itertools.repeat(None, deque.__len__(array)), array.maxlen)
        return shell

    def set(self, shell: deque, index: Index, value):
        deque.__setitem__(shell, index[0], value)


class BufferAdapter(ArrayAdapter):
    """``bytearray`` and ``array.array``, whose elements are plain numbers"""

    def shape(self, array) -> tuple[int, ...]:
        return (len(memoryview(array)),)

    def get(self, array, index: Index):
        return memoryview(array)[index[0]]

    def holds_leaves(self, array) -> bool:
        return True

    def allocate(self, array):
        cls = type(array)
        if isinstance(array, bytearray):
            shell = bytearray.__new__(cls)
            bytearray.extend(shell, memoryview(array))
            return shell
        return _array.array.__new__(cls, array.typecode, _array.array.tobytes(array))


class TupleAdapter(ArrayAdapter):
    """``tuple`` and its subclasses (including named tuples), rank 1"""

    frozen = True

    def shape(self, array: tuple) -> tuple[int, ...]:
        return (tuple.__len__(array),)

    def get(self, array: tuple, index: Index):
        return tuple.__getitem__(array, index[0])

    def items(self, array: tuple):
        for i, element in enumerate(tuple.__iter__(array)):
            yield (i,), element

    def build(self, array: tuple, values: list) -> tuple:
        cls = type(array)
        if cls is tuple:
            if all(new is old for new, old in zip(values, array)):
                return array
            return tuple(values)
        return tuple.__new__(cls, values)


class FrozenSetAdapter(ArrayAdapter):
    """``frozenset`` and its subclasses, rank 1 in iteration order"""

    frozen = True

    def shape(self, array: frozenset) -> tuple[int, ...]:
        return (frozenset.__len__(array),)

    def get(self, array: frozenset, index: Index):
        return next(itertools.islice(frozenset.__iter__(array), index[0], None))

    def items(self, array: frozenset):
        for i, element in enumerate(frozenset.__iter__(array)):
            yield (i,), element

    def build(self, array: frozenset, values: list) -> frozenset:
        cls = type(array)
        if cls is frozenset:
            if all(new is old for new, old in zip(values, frozenset.__iter__(array))):
                return array
            return frozenset(values)
        return frozenset.__new__(cls, values)


DEFAULT_ARRAY_ADAPTERS: dict[type, ArrayAdapter] = {
    np.ndarray: NumpyArrayAdapter(),
    list: ListAdapter(),
    deque: DequeAdapter(),
    bytearray: BufferAdapter(),
    _array.array: BufferAdapter(),
    tuple: TupleAdapter(),
    frozenset: FrozenSetAdapter(),
}


def describe_shape(array, adapter: ArrayAdapter) -> str:
    shape = adapter.shape(array)
    return f"{qualified_name(type(array))}[{', '.join(map(str, shape))}]"
