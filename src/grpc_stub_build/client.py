"""Generation of client stubs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from grpc_stub_build import helper, names
from grpc_stub_build.descriptors import MethodDescriptor, ServiceDescriptor
from grpc_stub_build.resolver import InvalidPathError, import_level, resolve_type
from grpc_stub_build.scope import Module, Scope

if TYPE_CHECKING:
    from grpc_stub_build.generator import GeneratorFlags

logger = logging.getLogger(__name__)

MODULE_NAME = "client"


class ClientGenerator:
    """Adds one client class per service to the `client` module of a scope."""

    def __init__(self, flags: GeneratorFlags):
        """Initialize the client generator.

        Args:
            flags (GeneratorFlags): The shared generator flags, read on every call to `generate`.
        """
        self._flags = flags

    def generate(self, service: ServiceDescriptor, scope: Scope) -> None:
        """Add the client of a service to a scope.

        Args:
            service (ServiceDescriptor): The service.
            scope (Scope): The scope to add the client to.

        Raises:
            InvalidPathError: If a message type of a method cannot be referenced.
        """
        module = scope.get_or_create_module(MODULE_NAME)
        level = import_level(service.file_name, self._flags.relative_imports)

        # Imports go to the root, so that method bodies find them as module globals.
        bindings = [self._gen_binding(service, method, level, scope.root) for method in service.methods]

        lines = [f"class {names.sanitize_name(service.proto_name)}:"]
        lines += helper.indent_lines(helper.format_docstring(service.comments, f"Client for `{service.full_name}`."))
        lines.append("")
        lines += helper.indent_lines(["def __init__(self, channel):"])
        lines += helper.indent_lines(['"""Constructor.', "", "Args:", "    channel: A grpc.Channel.", '"""'], 2)
        lines += helper.indent_lines([line for binding in bindings for line in binding], 2)

        module.append_item("\n".join(lines))
        logger.debug("Generated client for '%s' with %d method(s).", service.full_name, len(service.methods))

    def _gen_binding(self, service: ServiceDescriptor, method: MethodDescriptor, level: int, root: Module) -> list[str]:
        """Generate the statement that binds a method of the service to a multi-callable of the channel."""
        try:
            request_type = resolve_type(method.input_type, level, root, names.RESERVED_NAMES)
            response_type = resolve_type(method.output_type, level, root, names.RESERVED_NAMES)

        except InvalidPathError as e:
            raise InvalidPathError(f"{names.dispatch_path(service, method)}: {e}") from e

        return [
            f"self.{names.method_attribute(method)} = channel.{method.cardinality}(",
            f'    "{names.dispatch_path(service, method)}",',
            f"    request_serializer={request_type}.SerializeToString,",
            f"    response_deserializer={response_type}.FromString,",
            ")",
        ]
