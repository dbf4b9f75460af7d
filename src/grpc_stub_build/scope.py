"""The accumulating representation of a generated file.

A scope is a tree of modules. Every module holds import records, verbatim declarations and child modules.
Child modules are rendered as namespace classes, so that a single file can hold the `client` and the `server`
side of all services that a schema declares.
"""

from __future__ import annotations

import keyword
from collections.abc import Sequence
from dataclasses import dataclass

from grpc_stub_build import helper
from grpc_stub_build.names import PARENT, SEPARATOR


class RenderError(RuntimeError):
    """Raised when a scope is inconsistent and cannot be rendered to source."""


def _split(path: Sequence[str] | str) -> list[str]:
    if isinstance(path, str):
        return path.split(SEPARATOR) if path else []
    return list(path)


@dataclass(frozen=True)
class ImportRecord:
    """An import of `name` from `namespace`, optionally bound under an alias.

    Both are dotted paths. The last segment of `name`, or the alias, is the name that the import binds.
    A leading run of parent markers in the namespace makes the import relative.
    """

    namespace: str
    name: str
    alias: str = ""

    @property
    def bound_name(self) -> str:
        """The local name that this import binds."""
        return self.alias or _split(self.name)[-1]

    def render(self) -> str:
        """The import statement.

        E.g. `("a", "b.C")` renders as `from a.b import C`, `("^.^.a", "b.C")` as `from ..a.b import C`,
        and `("", "grpc")` as `import grpc`. With an alias, `("google.protobuf", "empty_pb2", "x")` renders as
        `from google.protobuf import empty_pb2 as x`.
        """
        segments = _split(self.namespace)

        levels = 0
        while levels < len(segments) and segments[levels] == PARENT:
            levels += 1

        name_segments = _split(self.name)
        source = [*segments[levels:], *name_segments[:-1]]
        imported = name_segments[-1]

        alias = f" as {self.alias}" if self.alias else ""

        if not levels and not source:
            return f"import {imported}{alias}"

        return f"from {'.' * levels}{SEPARATOR.join(source)} import {imported}{alias}"


class Module:
    """A named node of a scope."""

    def __init__(self, name: str):
        """Initialize an empty module.

        Args:
            name (str): The name of the module. The root module has an empty name.
        """
        self.name = name
        self.imports: list[ImportRecord] = []
        self.items: list[str] = []
        self.children: dict[str, Module] = {}

    def __repr__(self) -> str:
        return (
            f"Module(name={self.name!r}, imports={len(self.imports)}, "
            f"items={len(self.items)}, children={list(self.children)})"
        )

    @property
    def is_empty(self) -> bool:
        """Whether the module holds nothing at all."""
        return not (self.imports or self.items or self.children)

    def get_or_create_module(self, path: Sequence[str] | str) -> Module:
        """Get a descendant module, creating all missing modules on the way.

        An existing module is reused, so that repeated insertions of the same path accumulate into one module.

        Args:
            path (Sequence[str] | str): The names of the modules below this one, or a dotted path.

        Returns:
            Module: The module at the end of the path.
        """
        module = self

        for name in _split(path):
            child = module.children.get(name)

            if child is None:
                child = Module(name)
                module.children[name] = child

            module = child

        return module

    def append_item(self, declaration: str) -> None:
        """Append a declaration, which is rendered verbatim."""
        self.items.append(declaration)

    def register_import(self, namespace: str, name: str, alias: str = "") -> bool:
        """Register an import on this module.

        Args:
            namespace (str): The namespace to import from.
            name (str): The name to import.
            alias (str): The name to bind the import to. Defaults to the last segment of `name`.

        Returns:
            bool: Whether the import was new.
        """
        record = ImportRecord(namespace, name, alias)

        if record in self.imports:
            return False

        self.imports.append(record)
        return True

    def bound_import(self, name: str) -> ImportRecord | None:
        """The import of this module that binds a name, if any."""
        return next((record for record in self.imports if record.bound_name == name), None)

    def check(self) -> None:
        """Check that this module and its descendants can be rendered.

        Raises:
            RenderError: If a module name is not a valid identifier, if two imports bind the same name,
                or if a child module has the name of an import.
        """
        bound: dict[str, ImportRecord] = {}

        for record in self.imports:
            other = bound.setdefault(record.bound_name, record)

            if other != record:
                raise RenderError(
                    f"Module '{self.name}' imports '{record.bound_name}' twice: "
                    f"'{other.render()}' and '{record.render()}'."
                )

        for name, child in self.children.items():
            if not name.isidentifier() or keyword.iskeyword(name):
                raise RenderError(f"Module name '{name}' is not a valid identifier.")

            if name in bound:
                raise RenderError(f"Module '{name}' clashes with '{bound[name].render()}'.")

            child.check()

    def render_lines(self, depth: int = 0) -> list[str]:
        """Render the body of this module.

        Args:
            depth (int): The indentation level of the body.

        Returns:
            list[str]: The rendered lines.
        """
        blocks: list[list[str]] = []

        if self.imports:
            blocks.append(helper.indent_lines([record.render() for record in self.imports], depth))

        for item in self.items:
            if item.strip():
                blocks.append(helper.indent_lines(item.splitlines(), depth))

        for child in self.children.values():
            heading = helper.indent_lines([f"class {child.name}:"], depth)
            body = child.render_lines(depth + 1) or helper.indent_lines(["pass"], depth + 1)
            blocks.append(heading + body)

        separator = [""] * (2 if depth == 0 else 1)

        lines: list[str] = []
        for block in blocks:
            if lines:
                lines.extend(separator)
            lines.extend(block)

        return lines


class Scope:
    """The accumulating representation of one generated file."""

    def __init__(self):
        """Initialize an empty scope."""
        self.root = Module("")

    @property
    def is_empty(self) -> bool:
        """Whether nothing was added since the last reset."""
        return self.root.is_empty

    def get_or_create_module(self, path: Sequence[str] | str) -> Module:
        """Get the module at a path below the root, creating missing modules.

        Args:
            path (Sequence[str] | str): The module names, or a dotted path. An empty path is the root.

        Returns:
            Module: The module.
        """
        return self.root.get_or_create_module(path)

    def append_item(self, module: Module, declaration: str) -> None:
        """Append a declaration to a module."""
        module.append_item(declaration)

    def register_import(self, module: Module, namespace: str, name: str, alias: str = "") -> bool:
        """Register an import on a module; duplicate registrations are ignored."""
        return module.register_import(namespace, name, alias)

    def render(self) -> str:
        """Render the whole tree to source.

        Raises:
            RenderError: If the tree is inconsistent. Nothing is rendered in that case.

        Returns:
            str: The source, or an empty string for an empty scope.
        """
        self.root.check()

        lines = self.root.render_lines()
        if not lines:
            return ""

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Discard all content."""
        self.root = Module("")
