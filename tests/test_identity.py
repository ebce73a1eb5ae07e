# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations

import gc

import pytest

from pydiverse.replica import (
    IdentityComparer,
    IdentityDict,
    IdentitySet,
    identity_equals,
    identity_hash,
)


class OverriddenHash:
    def __hash__(self):
        return 42

    def __eq__(self, other):
        return True


class Unhashable:
    __hash__ = None

    def __eq__(self, other):
        return isinstance(other, Unhashable)


def test_comparer_does_not_use_overridden_hash():
    t = OverriddenHash()
    comparer = IdentityComparer()
    assert hash(t) == 42
    assert comparer.hash(t) != 42
    assert comparer.hash(t) == id(t)


def test_comparer_distinguishes_instances_that_claim_equality():
    a, b = OverriddenHash(), OverriddenHash()
    comparer = IdentityComparer()

    assert a == b
    assert not comparer.equals(a, b)
    assert comparer.equals(a, a)
    assert comparer.hash(a) != comparer.hash(b)


def test_identity_functions():
    a = [1, 2]
    b = [1, 2]
    assert identity_equals(a, a)
    assert not identity_equals(a, b)
    assert identity_hash(a) != identity_hash(b)
    assert identity_hash(a) == identity_hash(a)

    # absent equals absent
    assert identity_equals(None, None)
    assert not identity_equals(None, a)
    assert identity_hash(None) == id(None)


def test_identity_hash_of_unhashable():
    x = Unhashable()
    with pytest.raises(TypeError):
        hash(x)
    assert identity_hash(x) == id(x)


def test_identity_dict_keeps_distinct_keys_apart():
    a, b = OverriddenHash(), OverriddenHash()
    d = IdentityDict()
    d[a] = "a"
    d[b] = "b"

    assert len(d) == 2
    assert d[a] == "a"
    assert d[b] == "b"
    assert OverriddenHash() not in d
    with pytest.raises(KeyError):
        _ = d[OverriddenHash()]

    # a regular dict collapses both keys
    assert len({a: "a", b: "b"}) == 1


def test_identity_dict_accepts_unhashable_keys():
    lst = [1]
    d = IdentityDict([(lst, "list"), (Unhashable(), "unhashable")])
    assert d[lst] == "list"
    assert [1] not in d
    assert list(d)[0] is lst

    del d[lst]
    assert lst not in d
    assert len(d) == 1
    with pytest.raises(KeyError):
        del d[lst]


def test_identity_dict_keeps_keys_alive():
    d = IdentityDict()
    for i in range(100):
        d[[i]] = i
    gc.collect()

    # none of the temporary lists could be collected, so all ids are distinct
    assert len(d) == 100
    assert sorted(key[0] for key in d) == list(range(100))
    assert sorted(d.values()) == list(range(100))


def test_identity_dict_get_and_setdefault():
    key = {}
    d = IdentityDict()
    assert d.get(key) is None
    assert d.setdefault(key, 1) == 1
    assert d.setdefault(key, 2) == 1
    assert d.get({}, "missing") == "missing"


def test_identity_set():
    a, b = OverriddenHash(), OverriddenHash()
    s = IdentitySet([a, b, a])

    assert len(s) == 2
    assert a in s and b in s
    assert OverriddenHash() not in s

    s.discard(a)
    s.discard(a)
    assert a not in s
    assert list(s) == [b]

    s.add([])
    assert len(s) == 2
