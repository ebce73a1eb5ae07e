# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause

from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")

# Full N-dimensional position of an array element
Index = tuple[int, ...]

Getter = Callable[[Any], Any]
Setter = Callable[[Any, Any], None]
