# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Enumeration of the instance state of composite objects.

State is read from and written to its storage directly: the instance
``__dict__``, slot descriptors and the C-level methods of builtin container
bases. ``__getattr__``, ``__setattr__``, properties and overridden container
methods are never involved, so frozen dataclasses, attrs classes and classes
with side-effecting setters all get copied faithfully. Computed members
(properties and other descriptors without storage) are not part of the state.
"""

from __future__ import annotations

from collections import OrderedDict, defaultdict
from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any

from attrs import frozen

from pydiverse.replica._typing import Getter, Setter
from pydiverse.replica.core.allocate import PAYLOAD_BASES, native_base
from pydiverse.replica.util import mangle_private_name

ENTRIES = "<entries>"


@frozen
class Member:
    """Accessor pair for one piece of instance state."""

    name: str
    get: Getter
    set: Setter


def _get_dict(obj) -> dict:
    return object.__getattribute__(obj, "__dict__")


def _slot_names(cls: type) -> tuple[tuple[type, str], ...]:
    seen = set()
    result = []
    for base in cls.__mro__:
        slots = base.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            name = mangle_private_name(base, name)
            if name in seen:
                continue
            seen.add(name)
            result.append((base, name))
    return tuple(result)


def _descriptor_member(owner: type, name: str) -> Member:
    descriptor = owner.__dict__[name]
    return Member(name=name, get=descriptor.__get__, set=descriptor.__set__)


def _dict_member(name: str) -> Member:
    return Member(
        name=name,
        get=lambda obj: _get_dict(obj)[name],
        set=lambda target, value: _get_dict(target).__setitem__(name, value),
    )


def _set_mapping_items(setitem):
    def setter(target, items):
        for key, value in items:
            setitem(target, key, value)

    return setter


def _entries_member(cls: type) -> Member | None:
    if issubclass(cls, dict):
        setitem = OrderedDict.__setitem__ if issubclass(cls, OrderedDict) else dict.__setitem__
        return Member(
            name=ENTRIES,
            get=lambda obj: list(dict.items(obj)),
            set=_set_mapping_items(setitem),
        )
    if issubclass(cls, set):
        return Member(
            name=ENTRIES,
            get=lambda obj: list(set.__iter__(obj)),
            set=set.update,
        )
    return None


# State of builtin bases that lives neither in `__dict__` nor in `__slots__`.
# Order matters: setting `__cause__` also sets `__suppress_context__`, so the
# latter is restored last. `__traceback__` is left unset in copies.
NATIVE_MEMBERS: dict[type, tuple[str, ...]] = {
    defaultdict: ("default_factory",),
    BaseException: ("args", "__cause__", "__context__", "__suppress_context__"),
    OSError: ("errno", "strerror", "filename", "filename2", "characters_written"),
    AttributeError: ("name", "obj"),
    NameError: ("name",),
    ImportError: ("msg", "name", "path"),
    StopIteration: ("value",),
    SystemExit: ("code",),
    SyntaxError: ("msg", "filename", "lineno", "offset", "text", "end_lineno", "end_offset", "print_file_and_line"),
}

# Builtin bases that keep no state besides what the members above reach
TRANSPARENT_BASES: tuple[type, ...] = (
    object,
    *PAYLOAD_BASES,
    dict,
    set,
    OrderedDict,
    SimpleNamespace,
)


def hidden_state_base(cls: type) -> type | None:
    """The builtin base of ``cls`` that stores state no member can reach, if any

    A builtin base is fine if it is known, or if it extends a known base
    without adding any C-level fields of its own (e.g. ``ValueError``).
    """
    base = native_base(cls)
    for known in base.__mro__:
        if known in TRANSPARENT_BASES or known in NATIVE_MEMBERS:
            if known is base or base.__basicsize__ == known.__basicsize__:
                return None
            return base
    return base


def _native_members(cls: type) -> Iterator[Member]:
    for base in cls.__mro__:
        for name in NATIVE_MEMBERS.get(base, ()):
            # not every member exists on every python version
            if name in base.__dict__:
                yield _descriptor_member(base, name)


class MemberLayout:
    """Where the state of instances of one class is stored.

    The layout only depends on the class and is computed once per type.
    Which ``__dict__`` entries exist and which slots are bound is decided per
    instance in :meth:`members`.
    """

    def __init__(self, cls: type):
        self.cls = cls
        self.has_dict = getattr(cls, "__dictoffset__", 0) != 0
        self.slot_members = tuple(_descriptor_member(owner, name) for owner, name in _slot_names(cls))
        self.native_members = tuple(_native_members(cls))
        self.entries_member = _entries_member(cls)

    @property
    def is_empty(self) -> bool:
        """True if instances of this class can't carry any state."""
        return not (self.has_dict or self.slot_members or self.native_members or self.entries_member)

    def members(self, obj: Any) -> Iterator[Member]:
        """All members currently holding state on ``obj``.

        Native members come first and entries last, so that for example a
        ``defaultdict`` has its factory in place before items are inserted.
        """
        for member in (*self.native_members, *self.slot_members):
            try:
                member.get(obj)
            except AttributeError:
                # unset slot or member
                continue
            yield member
        if self.has_dict:
            for name in list(_get_dict(obj)):
                yield _dict_member(name)
        if self.entries_member is not None:
            yield self.entries_member

    def __repr__(self):
        return (
            f"<{type(self).__name__} {self.cls.__qualname__}: dict={self.has_dict},"
            f" slots={[m.name for m in self.slot_members]},"
            f" entries={self.entries_member is not None}>"
        )
