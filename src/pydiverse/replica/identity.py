# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Identity based equality and hashing.

Types are free to redefine ``__eq__`` and ``__hash__``. A class whose
instances all hash to the same value and all compare equal would make a
regular ``dict`` collapse unrelated objects onto one key. Anything that needs
to remember *which object* it has seen must therefore key on identity only.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableMapping, MutableSet
from typing import Any, Generic

from pydiverse.replica._typing import K, V


def identity_equals(a: Any, b: Any) -> bool:
    """True iff ``a`` and ``b`` are the very same object.

    ``None`` is a singleton, so two absent values compare equal.
    """
    return a is b


def identity_hash(a: Any) -> int:
    """Hash derived purely from the identity of ``a``.

    The value is stable for the lifetime of ``a`` and ignores any
    ``__hash__`` the type defines (including ``__hash__ = None``).
    """
    return id(a)


class IdentityComparer:
    """Key policy comparing objects by identity.

    Usable wherever an ``equals`` / ``hash`` pair is expected, for example to
    parametrize :class:`IdentityDict`.
    """

    def equals(self, a: Any, b: Any) -> bool:
        return identity_equals(a, b)

    def hash(self, a: Any) -> int:
        return identity_hash(a)

    def __repr__(self):
        return f"{type(self).__name__}()"


_default_comparer = IdentityComparer()


class IdentityDict(MutableMapping, Generic[K, V]):
    """Mapping whose keys are compared by identity.

    Because we remember objects by their id, we have to make sure that the
    key objects stay alive for as long as they are in the mapping. Otherwise,
    a temporary key could be collected and its id be reused by an unrelated
    object. Every entry therefore stores a strong reference to its key.
    """

    def __init__(
        self,
        items: Iterable[tuple[K, V]] | None = None,
        comparer: IdentityComparer | None = None,
    ):
        self._comparer = comparer or _default_comparer
        self._data: dict[int, tuple[K, V]] = {}
        if items is not None:
            for key, value in items:
                self[key] = value

    @property
    def comparer(self) -> IdentityComparer:
        return self._comparer

    def __getitem__(self, key: K) -> V:
        try:
            stored_key, value = self._data[self._comparer.hash(key)]
        except KeyError:
            raise KeyError(key) from None
        if not self._comparer.equals(stored_key, key):
            raise KeyError(key)
        return value

    def __setitem__(self, key: K, value: V):
        self._data[self._comparer.hash(key)] = (key, value)

    def __delitem__(self, key: K):
        # look up first, so we only delete entries that are really ours
        self[key]
        del self._data[self._comparer.hash(key)]

    def __contains__(self, key: object) -> bool:
        entry = self._data.get(self._comparer.hash(key))
        return entry is not None and self._comparer.equals(entry[0], key)

    def __iter__(self) -> Iterator[K]:
        for key, _ in self._data.values():
            yield key

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self):
        items = ", ".join(f"{k!r}: {v!r}" for k, v in self._data.values())
        return f"{type(self).__name__}({{{items}}})"


class IdentitySet(MutableSet, Generic[K]):
    """Set whose members are compared by identity.

    Like :class:`IdentityDict`, members are kept alive while they are
    contained in the set.
    """

    def __init__(
        self,
        items: Iterable[K] | None = None,
        comparer: IdentityComparer | None = None,
    ):
        self._items: IdentityDict[K, None] = IdentityDict(comparer=comparer)
        if items is not None:
            for item in items:
                self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[K]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: K):
        self._items[item] = None

    def discard(self, item: K):
        if item in self._items:
            del self._items[item]

    def __repr__(self):
        return f"{type(self).__name__}({list(self._items)!r})"


__all__ = [
    "identity_equals",
    "identity_hash",
    "IdentityComparer",
    "IdentityDict",
    "IdentitySet",
]
