"""Resolution of type references into imports and use-site names."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import TYPE_CHECKING

from grpc_stub_build.names import PARENT, SEPARATOR
from grpc_stub_build.scope import ImportRecord, Module

if TYPE_CHECKING:
    from grpc_stub_build.descriptors import TypeReference


class InvalidPathError(ValueError):
    """Raised when a type path does not contain a concrete name."""


def resolve_import(type_path: Sequence[str] | str, level: int, module: Module) -> str:
    """Decide how a type is referenced at its use site, and register an import for it if possible.

    The path is first prefixed by `level` parent markers. An import statement has to end in a concrete name,
    so if the first concrete segment of the path is the type name itself, the type cannot be imported
    without clashing with names of the current namespace. It is referenced by its full, marker-prefixed path instead.

    Otherwise, the module that contains the type is split off, the type is imported from it,
    and the type is referenced by its own name.

    E.g. `["a", "b", "C"]` on level 0 imports `("a", "b.C")` (`from a.b import C`) and returns `C`.

    Args:
        type_path (Sequence[str] | str): The segments of the type path, or a dotted path.
        level (int): The number of namespace hops from the use site back to the root of the path.
        module (Module): The module that receives the import.

    Raises:
        InvalidPathError: If the path has no concrete segment.

    Returns:
        str: The name to use at the use site.
    """
    if isinstance(type_path, str):
        type_path = type_path.split(SEPARATOR) if type_path else []

    path = [PARENT] * level + list(type_path)

    first_concrete = next((index for index, segment in enumerate(path) if segment != PARENT), None)

    if first_concrete is None:
        raise InvalidPathError(f"The type path '{SEPARATOR.join(path)}' consists of parent markers only.")

    if first_concrete == len(path) - 1:
        return SEPARATOR.join(path)

    namespace = SEPARATOR.join(path[:-2])
    name = SEPARATOR.join(path[-2:])
    module.register_import(namespace, name)

    return path[-1]


def import_level(file_name: str, relative: bool) -> int:
    """The number of namespace hops from a generated module back to the output root.

    With absolute imports, this is always zero. With relative imports, a module that is generated for
    `foo/bar.proto` lives in the package `foo`, and needs one hop to reach `foo` and one more to reach the root.

    Args:
        file_name (str): The name of the schema file that the module is generated for.
        relative (bool): Whether relative imports are generated.

    Returns:
        int: The import level.
    """
    if not relative:
        return 0

    return file_name.count("/") + 1


def module_alias(module_path: Sequence[str]) -> str:
    """The name that a message module is bound to when its messages cannot be imported by their own names.

    Follows the aliases of grpcio-tools, e.g. `("google", "protobuf", "empty_pb2")` becomes
    `google_dot_protobuf_dot_empty__pb2`.
    """
    return "_dot_".join(segment.replace("_", "__") for segment in module_path)


def _is_taken(module: Module, record: ImportRecord, reserved: Collection[str]) -> bool:
    name = record.bound_name

    if name in reserved or name in module.children:
        return True

    other = module.bound_import(name)
    return other is not None and other != record


def resolve_type(reference: TypeReference, level: int, module: Module, reserved: Collection[str] = ()) -> str:
    """Resolve a message type reference, including access to nested types.

    Only the top-level message can be imported from its module; nested messages are attributes of it.
    Well known types live in the protobuf package and are always imported absolutely.

    If the message name is already bound in the module, by an import of another message or by one of the
    `reserved` names, the message module is imported under its alias instead, and the message is accessed
    as an attribute of it. E.g. `google.protobuf.Empty` next to a local `Empty` becomes
    `google_dot_protobuf_dot_empty__pb2.Empty`.

    Args:
        reference (TypeReference): The message type to reference.
        level (int): The import level of the use site.
        module (Module): The module that receives the import.
        reserved (Collection[str]): Names that the generated code binds in the module by other means.

    Returns:
        str: The name to use at the use site.
    """
    if reference.is_well_known:
        level = 0

    markers = [PARENT] * level

    if reference.module_path:
        path = [*markers, *reference.import_path]
        record = ImportRecord(SEPARATOR.join(path[:-2]), SEPARATOR.join(path[-2:]))

        if _is_taken(module, record, reserved):
            alias = module_alias(reference.module_path)
            namespace = SEPARATOR.join([*markers, *reference.module_path[:-1]])
            module.register_import(namespace, reference.module_path[-1], alias)

            return SEPARATOR.join((alias, *reference.name_path))

    name = resolve_import(reference.import_path, level, module)

    nested = reference.name_path[1:]
    if nested:
        name = SEPARATOR.join((name, *nested))

    return name
