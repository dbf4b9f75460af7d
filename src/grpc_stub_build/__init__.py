"""Generate gRPC client and server stubs for services of protocol buffer schemas."""

from grpc_stub_build.config import Config
from grpc_stub_build.descriptors import MethodDescriptor, ServiceDescriptor, TypeReference
from grpc_stub_build.generator import GeneratorFlags, GeneratorState, ServiceGenerator, ServiceGeneratorHook
from grpc_stub_build.resolver import InvalidPathError
from grpc_stub_build.run import ProtocError
from grpc_stub_build.scope import RenderError, Scope

__all__ = [
    "Config",
    "GeneratorFlags",
    "GeneratorState",
    "InvalidPathError",
    "MethodDescriptor",
    "ProtocError",
    "RenderError",
    "Scope",
    "ServiceDescriptor",
    "ServiceGenerator",
    "ServiceGeneratorHook",
    "TypeReference",
]
