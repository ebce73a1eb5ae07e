# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
"""Deep copy of arbitrary object graphs.

The traversal runs on an explicit work-stack instead of the interpreter's
call stack. Every array or composite being copied is a generator frame that
yields each of its children and gets the child's copy sent back::

    shell = allocate(value)
    visited[value] = shell
    for member in members(value):
        member.set(shell, (yield member.get(value)))
    return shell

The driver loop in :meth:`_CopyRun.run` resolves each yielded child.
Leaves and already visited objects are answered right away. Everything else
gets a new frame pushed on the stack. A frame's return value is sent to the
frame below it.

Shells of mutable containers are registered in the visited-map before any of
their children are visited. A reference back to an ancestor therefore resolves
to the ancestor's shell, which is what makes cycles terminate and shared
references stay shared.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import structlog

from pydiverse.replica._typing import T
from pydiverse.replica.config import ReplicaConfig
from pydiverse.replica.core.allocate import allocate
from pydiverse.replica.core.arrays import describe_shape
from pydiverse.replica.core.classify import Classifier, Kind, TypeDescriptor
from pydiverse.replica.errors import (
    AllocationError,
    CircularityNotResolvedError,
    ReplicaError,
    UnsupportedTypeError,
)
from pydiverse.replica.identity import IdentityDict
from pydiverse.replica.util import qualified_name

_nil = object()

Frame = Generator[Any, Any, Any]


class DeepCopyEngine:
    """Produces fully independent copies of object graphs.

    :param config: Settings to use. If ``None``, the config active at the
        time of each :meth:`copy` call is used.
    :param classifier: Type classification policy. Defaults to the one
        derived from the config.
    """

    def __init__(self, config: ReplicaConfig | None = None, classifier: Classifier | None = None):
        self._config = config
        self._classifier = classifier
        self.logger = structlog.get_logger(logger_name=type(self).__name__)

    @property
    def config(self) -> ReplicaConfig:
        return self._config if self._config is not None else ReplicaConfig.get()

    def copy(self, value: T) -> T:
        """Deep copy ``value``

        Leaves are returned as they are. Arrays and composites are rebuilt
        with fresh storage, such that no mutable state is shared between
        ``value`` and its copy, while shared references and cycles within
        ``value`` are reproduced in the copy.

        :raises UnsupportedTypeError: If the graph contains a value that can't
            be classified.
        :raises AllocationError: If an object can't be allocated.
        :raises CircularityNotResolvedError: If the graph is nested deeper than
            ``config.max_depth``.
        """
        config = self.config
        classifier = self._classifier or config.create_classifier()
        return _CopyRun(config, classifier, self.logger).run(value)


class _CopyRun:
    """State of a single top-level copy; never shared between calls"""

    def __init__(self, config: ReplicaConfig, classifier: Classifier, logger):
        self.config = config
        self.classifier = classifier
        self.logger = logger
        self.visited: IdentityDict[Any, Any] = IdentityDict()
        self.peak_depth = 0
        self.shared_types: set[type] = set()

    def run(self, root):
        done, result = self._visit(root)
        if done:
            return result

        stack: list[Frame] = [result]
        sent = None
        while stack:
            try:
                child = stack[-1].send(sent)
            except StopIteration as stop:
                stack.pop()
                sent = stop.value
                continue

            done, result = self._visit(child)
            if done:
                sent = result
                continue

            if len(stack) >= self.config.max_depth:
                self.logger.error(
                    "Copy work-stack exceeded maximum depth",
                    max_depth=self.config.max_depth,
                    value_type=qualified_name(type(child)),
                )
                raise CircularityNotResolvedError(
                    f"Object graph is nested deeper than max_depth={self.config.max_depth}"
                )
            stack.append(result)
            self.peak_depth = max(self.peak_depth, len(stack))
            sent = None

        self.logger.debug(
            "Copied object graph",
            root_type=qualified_name(type(root)),
            visited_entries=len(self.visited),
            peak_depth=self.peak_depth,
        )
        return sent

    def _visit(self, value) -> tuple[bool, Any]:
        """Either ``(True, copy)`` if the copy is known, or ``(False, frame)``"""
        if value is None:
            return True, None

        try:
            descriptor = self.classifier.describe(type(value))
        except UnsupportedTypeError:
            self.logger.error(
                "Can't copy value of unsupported type", value_type=qualified_name(type(value)), value=value
            )
            raise
        if descriptor.kind is Kind.LEAF:
            if descriptor.passthrough and descriptor.cls not in self.shared_types:
                self.shared_types.add(descriptor.cls)
                self.logger.warning("Sharing value by reference", value_type=qualified_name(type(value)))
            return True, value

        copied = self.visited.get(value, _nil)
        if copied is not _nil:
            return True, copied

        if descriptor.kind is Kind.ARRAY:
            if descriptor.adapter.frozen:
                return False, self._copy_frozen_array(value, descriptor)
            return False, self._copy_array(value, descriptor)
        return False, self._copy_composite(value, descriptor)

    def _allocate(self, value):
        return allocate(value, construct_fallback=self.config.construct_fallback)

    def _copy_members(self, value, shell, descriptor: TypeDescriptor) -> Frame:
        for member in list(descriptor.layout.members(value)):
            member.set(shell, (yield member.get(value)))

    def _copy_composite(self, value, descriptor: TypeDescriptor) -> Frame:
        shell = self._allocate(value)
        self.visited[value] = shell
        yield from self._copy_members(value, shell, descriptor)
        return shell

    def _copy_array(self, value, descriptor: TypeDescriptor) -> Frame:
        adapter = descriptor.adapter
        try:
            shell = adapter.allocate(value)
        except ReplicaError:
            raise
        except (TypeError, ValueError) as e:
            raise AllocationError(f"Can't allocate copy of {describe_shape(value, adapter)}") from e
        self.visited[value] = shell

        if not adapter.holds_leaves(value):
            for index, element in adapter.items(value):
                adapter.set(shell, index, (yield element))
        yield from self._copy_members(value, shell, descriptor)
        return shell

    def _copy_frozen_array(self, value, descriptor: TypeDescriptor) -> Frame:
        adapter = descriptor.adapter
        values = []
        for _, element in adapter.items(value):
            values.append((yield element))

        # A frozen array can't be registered before its elements exist. If it
        # is reachable from one of its own elements, it got copied already.
        copied = self.visited.get(value, _nil)
        if copied is not _nil:
            return copied

        try:
            shell = adapter.build(value, values)
        except ReplicaError:
            raise
        except (TypeError, ValueError) as e:
            raise AllocationError(f"Can't build copy of {describe_shape(value, adapter)}") from e
        if shell is value:
            return value

        self.visited[value] = shell
        yield from self._copy_members(value, shell, descriptor)
        return shell


_default_engine = DeepCopyEngine()


def deep_copy(value: T, config: ReplicaConfig | None = None) -> T:
    """Deep copy ``value``, preserving shared references and cycles

    :param value: Any value.
    :param config: Settings to use instead of the active :class:`ReplicaConfig`.
    """
    if config is None:
        return _default_engine.copy(value)
    return DeepCopyEngine(config=config).copy(value)
