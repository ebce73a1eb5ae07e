# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations

import collections
import decimal
import traceback

import pytest

from pydiverse.replica.util import import_object, import_type, mangle_private_name, qualified_name
from pydiverse.replica.util.structlog import ReplicaConsoleRenderer


def test_import_object():
    assert import_object("decimal.Decimal") is decimal.Decimal
    assert import_object("collections.OrderedDict.fromkeys") == collections.OrderedDict.fromkeys
    assert import_object("dict") is dict

    with pytest.raises(AttributeError):
        import_object("collections.DoesNotExist")


def test_import_type():
    assert import_type("collections.Counter") is collections.Counter
    with pytest.raises(TypeError, match="not a class"):
        import_type("os.path.join")


def test_qualified_name():
    class Local:
        pass

    assert qualified_name(int) == "int"
    assert qualified_name(decimal.Decimal) == "decimal.Decimal"
    assert qualified_name(Local) == f"{__name__}.test_qualified_name.<locals>.Local"


def test_mangle_private_name():
    class Foo:
        pass

    class _Bar:
        pass

    class __:
        pass

    assert mangle_private_name(Foo, "__x") == "_Foo__x"
    assert mangle_private_name(_Bar, "__x") == "_Bar__x"
    assert mangle_private_name(Foo, "__dunder__") == "__dunder__"
    assert mangle_private_name(Foo, "_single") == "_single"
    assert mangle_private_name(__, "__x") == "__x"


def test_format_exception():
    try:
        raise RuntimeError("this error is intended by test")
    except RuntimeError:
        trace = traceback.format_exc()
        assert 'RuntimeError("this error is intended by test")' in trace
        assert "test_util.py" in trace


def test_console_renderer_puts_values_on_own_lines():
    renderer = ReplicaConsoleRenderer(render_keys=["value"], colors=False)
    output = renderer(None, "error", {"event": "Can't copy value", "value": {"key": [1, 2]}})

    first_line, *rest = output.split("\n")
    assert "Can't copy value" in first_line
    assert "key" not in first_line
    assert [line.strip() for line in rest] == ["[value]", "{'key': [1, 2]}"]
