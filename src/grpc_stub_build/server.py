"""Generation of server-side servicer classes and their registration functions."""

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

MODULE_NAME = "server"
UNIMPLEMENTED_DOC = "Missing associated documentation comment in .proto file."


def registration_function_name(service: ServiceDescriptor) -> str:
    """The name of the function that adds a servicer to a `grpc.Server`, e.g. `add_greeter_to_server`."""
    return f"add_{names.to_lower_words(service.proto_name)}_to_server"


class ServerGenerator:
    """Adds a servicer base class and a registration function per service to the `server` module of a scope."""

    def __init__(self, flags: GeneratorFlags):
        """Initialize the server generator.

        Args:
            flags (GeneratorFlags): The shared generator flags, read on every call to `generate`.
        """
        self._flags = flags

    def generate(self, service: ServiceDescriptor, scope: Scope) -> None:
        """Add the servicer of a service to a scope.

        Args:
            service (ServiceDescriptor): The service.
            scope (Scope): The scope to add the servicer to.

        Raises:
            InvalidPathError: If a message type of a method cannot be referenced.
        """
        module = scope.get_or_create_module(MODULE_NAME)
        level = import_level(service.file_name, self._flags.relative_imports)

        scope.register_import(scope.root, "", "grpc")

        module.append_item(self._gen_servicer_class(service))
        module.append_item(self._gen_registration_function(service, level, scope.root))

        logger.debug("Generated servicer for '%s' with %d method(s).", service.full_name, len(service.methods))

    def _gen_servicer_class(self, service: ServiceDescriptor) -> str:
        lines = [f"class {names.sanitize_name(service.proto_name)}:"]
        lines += helper.indent_lines(
            helper.format_docstring(service.comments, f"Base class for servers of `{service.full_name}`.")
        )

        for method in service.methods:
            request = "request_iterator" if method.client_streaming else "request"

            lines.append("")
            lines += helper.indent_lines([f"def {names.method_attribute(method)}(self, {request}, context):"])
            lines += helper.indent_lines(helper.format_docstring(method.comments, UNIMPLEMENTED_DOC), 2)
            lines += helper.indent_lines(
                [
                    "context.set_code(grpc.StatusCode.UNIMPLEMENTED)",
                    'context.set_details("Method not implemented!")',
                    'raise NotImplementedError("Method not implemented!")',
                ],
                2,
            )

        return "\n".join(lines)

    def _gen_registration_function(self, service: ServiceDescriptor, level: int, root: Module) -> str:
        handlers: list[str] = []

        for method in service.methods:
            handlers += self._gen_handler(service, method, level, root)

        lines = [
            "@staticmethod",
            f"def {registration_function_name(service)}(servicer, grpc_server):",
            f'    """Register a `{names.sanitize_name(service.proto_name)}` servicer with a grpc.Server."""',
            "    rpc_method_handlers = {",
            *helper.indent_lines(handlers, 2),
            "    }",
            f'    generic_handler = grpc.method_handlers_generic_handler("{service.full_name}", rpc_method_handlers)',
            "    grpc_server.add_generic_rpc_handlers((generic_handler,))",
        ]

        return "\n".join(lines)

    def _gen_handler(self, service: ServiceDescriptor, method: MethodDescriptor, level: int, root: Module) -> list[str]:
        try:
            request_type = resolve_type(method.input_type, level, root, names.RESERVED_NAMES)
            response_type = resolve_type(method.output_type, level, root, names.RESERVED_NAMES)

        except InvalidPathError as e:
            raise InvalidPathError(f"{names.dispatch_path(service, method)}: {e}") from e

        return [
            f'"{method.proto_name}": grpc.{method.cardinality}_rpc_method_handler(',
            f"    servicer.{names.method_attribute(method)},",
            f"    request_deserializer={request_type}.FromString,",
            f"    response_serializer={response_type}.SerializeToString,",
            "),",
        ]
