# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from .import_ import import_object, import_type
from .naming import mangle_private_name, qualified_name

__all__ = [
    "import_object",
    "import_type",
    "mangle_private_name",
    "qualified_name",
]
