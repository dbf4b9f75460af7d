"""Descriptions of services and methods that stubs are generated for.

The descriptors are plain, immutable values. They are created from protobuf `FileDescriptorProto` messages,
as handed to a protoc plugin or read from a descriptor set.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from google.protobuf import descriptor_pb2

PROTO_SUFFIX = ".proto"
MESSAGE_MODULE_SUFFIX = "_pb2"
WELL_KNOWN_PREFIX = "google/protobuf/"

# Field numbers within `FileDescriptorProto` and `ServiceDescriptorProto`, as used in source code info paths.
_SERVICE_FIELD = 6
_METHOD_FIELD = 2


def message_module_path(file_name: str) -> tuple[str, ...]:
    """The segments of the Python module that protoc generates messages of a schema file into.

    E.g. `foo/bar-baz.proto` becomes `("foo", "bar_baz_pb2")`.

    Args:
        file_name (str): The name of the schema file, relative to its include path.

    Returns:
        tuple[str, ...]: The module path.
    """
    stem = file_name[: -len(PROTO_SUFFIX)] if file_name.endswith(PROTO_SUFFIX) else file_name
    *packages, module = stem.replace("-", "_").split("/")
    return (*packages, f"{module}{MESSAGE_MODULE_SUFFIX}")


@dataclass(frozen=True)
class TypeReference:
    """The location of a message type in generated Python code."""

    module_path: tuple[str, ...]
    name_path: tuple[str, ...]
    full_name: str = ""
    file_name: str = ""

    @property
    def import_path(self) -> tuple[str, ...]:
        """The path of the top-level message, which is what can be imported."""
        return (*self.module_path, self.name_path[0])

    @property
    def is_well_known(self) -> bool:
        """Whether the type is shipped with the protobuf package."""
        return self.file_name.startswith(WELL_KNOWN_PREFIX)


@dataclass(frozen=True)
class MethodDescriptor:
    """A method of a service."""

    proto_name: str
    input_type: TypeReference
    output_type: TypeReference
    client_streaming: bool = False
    server_streaming: bool = False
    comments: tuple[str, ...] = ()

    @property
    def cardinality(self) -> str:
        """The name of the matching multi-callable of `grpc`, e.g. `unary_stream`."""
        request = "stream" if self.client_streaming else "unary"
        response = "stream" if self.server_streaming else "unary"
        return f"{request}_{response}"


@dataclass(frozen=True)
class ServiceDescriptor:
    """A service, as declared in a schema."""

    package: str
    proto_name: str
    methods: tuple[MethodDescriptor, ...] = ()
    file_name: str = ""
    comments: tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        """The name that gRPC knows the service by."""
        return f"{self.package}.{self.proto_name}"


class TypeIndex:
    """Maps fully qualified protobuf type names to their location in generated Python code."""

    def __init__(self):
        """Initialize an empty index."""
        self._types: dict[str, TypeReference] = {}

    @classmethod
    def from_files(cls, files: Iterable[descriptor_pb2.FileDescriptorProto]) -> TypeIndex:
        """Create an index of all messages that a set of files declares.

        Args:
            files (Iterable[descriptor_pb2.FileDescriptorProto]): The files.

        Returns:
            TypeIndex: The index.
        """
        index = cls()
        for file in files:
            index.add_file(file)
        return index

    def __contains__(self, full_name: str) -> bool:
        return full_name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def add_file(self, file: descriptor_pb2.FileDescriptorProto) -> None:
        """Add all messages of a file, including nested ones."""
        module_path = message_module_path(file.name)
        prefix = f".{file.package}" if file.package else ""

        pending = [(prefix, (), message) for message in file.message_type]

        while pending:
            parent_name, parent_path, message = pending.pop()
            full_name = f"{parent_name}.{message.name}"
            name_path = (*parent_path, message.name)

            self._types[full_name] = TypeReference(
                module_path=module_path,
                name_path=name_path,
                full_name=full_name,
                file_name=file.name,
            )

            pending.extend((full_name, name_path, nested) for nested in message.nested_type)

    def lookup(self, full_name: str) -> TypeReference:
        """Look up a type by its fully qualified name, e.g. `.helloworld.HelloRequest`.

        Raises:
            LookupError: If the type is not known.
        """
        try:
            return self._types[full_name]

        except KeyError as e:
            raise LookupError(f"The type '{full_name}' was not found in any of the loaded files.") from e


def _leading_comments(file: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], tuple[str, ...]]:
    comments: dict[tuple[int, ...], tuple[str, ...]] = {}

    for location in file.source_code_info.location:
        blocks = [*location.leading_detached_comments, location.leading_comments]
        blocks = [block for block in blocks if block.strip()]
        if blocks:
            comments[tuple(location.path)] = tuple(blocks)

    return comments


def services_from_file(file: descriptor_pb2.FileDescriptorProto, index: TypeIndex) -> list[ServiceDescriptor]:
    """Create descriptors for all services of a file, in declaration order.

    Args:
        file (descriptor_pb2.FileDescriptorProto): The file that declares the services.
        index (TypeIndex): An index that contains all message types the methods refer to.

    Raises:
        LookupError: If a method refers to an unknown message type. The message names the method.

    Returns:
        list[ServiceDescriptor]: The service descriptors.
    """
    comments = _leading_comments(file)
    services: list[ServiceDescriptor] = []

    for service_index, service in enumerate(file.service):
        service_path = (_SERVICE_FIELD, service_index)

        methods: list[MethodDescriptor] = []

        for method_index, method in enumerate(service.method):
            try:
                input_type = index.lookup(method.input_type)
                output_type = index.lookup(method.output_type)

            except LookupError as e:
                raise LookupError(f"/{file.package}.{service.name}/{method.name}: {e}") from e

            methods.append(
                MethodDescriptor(
                    proto_name=method.name,
                    input_type=input_type,
                    output_type=output_type,
                    client_streaming=method.client_streaming,
                    server_streaming=method.server_streaming,
                    comments=comments.get((*service_path, _METHOD_FIELD, method_index), ()),
                )
            )

        services.append(
            ServiceDescriptor(
                package=file.package,
                proto_name=service.name,
                methods=tuple(methods),
                file_name=file.name,
                comments=comments.get(service_path, ()),
            )
        )

    return services
