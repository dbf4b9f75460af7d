"""Naming helpers for generated stubs."""

from __future__ import annotations

import keyword
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from grpc_stub_build.descriptors import MethodDescriptor, ServiceDescriptor

# Marks one hop towards the parent namespace in a type path.
PARENT = "^"
SEPARATOR = "."

# Bound at the root of every generated file besides message imports.
RESERVED_NAMES = frozenset(("client", "server", "grpc"))


def dispatch_path(service: ServiceDescriptor, method: MethodDescriptor) -> str:
    """The path that gRPC dispatches a method call on.

    E.g. `/helloworld.Greeter/SayHello`. A service without a package dispatches on `/.Service/Method`,
    which differs from the `/Service/Method` that grpcio-tools generates, so such stubs do not interoperate.

    Args:
        service (ServiceDescriptor): The service that declares the method.
        method (MethodDescriptor): The method.

    Returns:
        str: The dispatch path.
    """
    return f"/{service.package}.{service.proto_name}/{method.proto_name}"


def to_lower_words(identifier: str) -> str:
    """Converts a mixed-case identifier into lowercase words, separated by underscores.

    Every uppercase ASCII letter, except for the very first character, is preceded by an underscore.
    Runs of uppercase letters are not grouped, so `HTTPServer` becomes `h_t_t_p_server`.

    Args:
        identifier (str): The identifier to convert.

    Returns:
        str: The converted identifier.
    """
    out: list[str] = []

    for index, char in enumerate(identifier):
        if "A" <= char <= "Z":
            if index != 0:
                out.append("_")
            out.append(char.lower())
        else:
            out.append(char)

    return "".join(out)


def unqualified(path: str) -> str:
    """The last segment of a dotted path."""
    return path.rsplit(SEPARATOR, 1)[-1]


def sanitize_name(name: str) -> str:
    """Sanitize a name to avoid Python keywords.

    If the name is a Python keyword, append an underscore.
    E.g. 'import' becomes 'import_', 'class' becomes 'class_'.

    Args:
        name (str): The original name.

    Returns:
        str: The sanitized name.
    """
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


def method_attribute(method: MethodDescriptor) -> str:
    """The attribute name that a method is bound to on stubs and servicers."""
    return sanitize_name(to_lower_words(method.proto_name))
