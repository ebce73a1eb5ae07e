# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations

import functools
from collections import OrderedDict, defaultdict
from dataclasses import dataclass

import pytest

from pydiverse.replica.core.allocate import allocate, native_base
from pydiverse.replica.core.members import ENTRIES, MemberLayout, hidden_state_base
from pydiverse.replica.errors import AllocationError


class Single:
    def __init__(self, one=None, two=0):
        self.one = one
        self.__two = two

    @property
    def two(self):
        return self.__two


class Slotted:
    __slots__ = ("a", "__hidden")


class SlottedChild(Slotted):
    __slots__ = ("b",)


@dataclass(frozen=True, slots=True)
class FrozenPoint:
    x: int
    y: int


class Loud:
    """Class whose construction and attribute assignment must not be invoked"""

    created = 0

    def __new__(cls, *args, **kwargs):
        cls.created += 1
        return super().__new__(cls)

    def __init__(self, required):
        self.required = required

    def __setattr__(self, key, value):
        raise AssertionError("__setattr__ must not be called")


def names(layout: MemberLayout, obj) -> list[str]:
    return [member.name for member in layout.members(obj)]


def test_dict_members_include_private_state():
    layout = MemberLayout(Single)
    obj = Single("x", 2)
    assert layout.has_dict
    assert names(layout, obj) == ["one", "_Single__two"]


def test_computed_members_are_skipped():
    layout = MemberLayout(Single)
    assert "two" not in names(layout, Single())


def test_slot_members():
    layout = MemberLayout(SlottedChild)
    assert not layout.has_dict
    assert [m.name for m in layout.slot_members] == ["b", "a", "_Slotted__hidden"]

    obj = SlottedChild()
    obj.a = 1
    # unset slots are skipped
    assert names(layout, obj) == ["a"]


def test_members_write_through_storage():
    layout = MemberLayout(FrozenPoint)
    point = FrozenPoint(1, 2)
    shell = allocate(point)
    for member in layout.members(point):
        member.set(shell, member.get(point))
    assert shell == point

    loud = object.__new__(Loud)
    object.__setattr__(loud, "required", 5)
    shell = allocate(loud)
    for member in MemberLayout(Loud).members(loud):
        member.set(shell, member.get(loud))
    assert shell.required == 5


def test_entries_member_for_mappings_and_sets():
    d = {"a": 1, "b": 2}
    layout = MemberLayout(dict)
    members = list(layout.members(d))
    assert [m.name for m in members] == [ENTRIES]
    assert members[0].get(d) == [("a", 1), ("b", 2)]

    target = {}
    members[0].set(target, [("c", 3)])
    assert target == {"c": 3}

    s = {1, 2}
    member = MemberLayout(set).entries_member
    assert sorted(member.get(s)) == [1, 2]
    target = set()
    member.set(target, [3])
    assert target == {3}


def test_ordered_dict_entries_keep_order():
    member = MemberLayout(OrderedDict).entries_member
    target = OrderedDict()
    member.set(target, [("b", 1), ("a", 2)])
    assert list(target) == ["b", "a"]


def test_defaultdict_factory_is_a_member():
    layout = MemberLayout(defaultdict)
    d = defaultdict(list)
    d["x"].append(1)
    assert names(layout, d) == ["default_factory", ENTRIES]


def test_empty_layout():
    assert MemberLayout(object).is_empty
    assert not MemberLayout(Single).is_empty


def test_allocate_does_not_call_constructor():
    before = Loud.created
    obj = allocate(object.__new__(Loud))
    assert isinstance(obj, Loud)
    assert Loud.created == before
    assert "required" not in obj.__dict__


def test_allocate_builtin_subclasses():
    class Tag(str):
        pass

    class Counter(dict):
        pass

    tag = allocate(Tag("label"))
    assert type(tag) is Tag
    assert tag == "label"

    counter = allocate(Counter(a=1))
    assert type(counter) is Counter
    assert counter == {}


def test_native_base():
    class A:
        pass

    class B(dict):
        pass

    assert native_base(A) is object
    assert native_base(B) is dict


def test_allocate_failure():
    class Fragile:
        pass

    obj = Fragile()
    # instances can no longer be created, neither raw nor through the constructor
    Fragile.__abstractmethods__ = frozenset({"missing"})

    with pytest.raises(AllocationError, match="Fragile"):
        allocate(obj)
    with pytest.raises(AllocationError, match="failed as well"):
        allocate(obj, construct_fallback=True)


def test_allocate_ignores_overridden_conversions():
    class Shouting(str):
        def __str__(self):
            return self.upper()

    assert str(Shouting("quiet")) == "QUIET"
    shell = allocate(Shouting("quiet"))
    assert type(shell) is Shouting
    assert shell == "quiet"


def test_exception_members():
    class AppError(Exception):
        pass

    err = AppError("boom")
    err.detail = 1
    assert names(MemberLayout(AppError), err) == [
        "args",
        "__cause__",
        "__context__",
        "__suppress_context__",
        "detail",
    ]


def test_os_error_members_skip_unset():
    err = OSError(2, "No such file")
    layout_names = names(MemberLayout(OSError), err)
    assert layout_names[:4] == ["errno", "strerror", "filename", "filename2"]
    # characters_written only exists once it was assigned
    assert "characters_written" not in layout_names
    assert "args" in layout_names


def test_hidden_state_base():
    class AppError(ValueError):
        pass

    class BoundCall(functools.partial):
        pass

    class Plain:
        pass

    assert hidden_state_base(Plain) is None
    assert hidden_state_base(AppError) is None
    assert hidden_state_base(FileNotFoundError) is None
    assert hidden_state_base(OrderedDict) is None
    assert hidden_state_base(defaultdict) is None
    assert hidden_state_base(BoundCall) is functools.partial
