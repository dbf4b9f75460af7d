"""Pytest configuration and fixtures for gRPC stub generator tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from grpc_stub_build.descriptors import MethodDescriptor, ServiceDescriptor, TypeReference

# Test directory structure
TESTS_DIR = Path(__file__).parent
SCHEMAS_DIR = TESTS_DIR / "schemas"


def message_type(name: str, module: str = "helloworld_pb2", file_name: str = "helloworld.proto") -> TypeReference:
    """A reference to a top-level message of a module."""
    return TypeReference(
        module_path=tuple(module.split(".")),
        name_path=(name,),
        full_name=f".helloworld.{name}",
        file_name=file_name,
    )


def make_request(*files: descriptor_pb2.FileDescriptorProto, parameter: str = "") -> plugin_pb2.CodeGeneratorRequest:
    """A plugin request that asks for generation of all given files."""
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.file_to_generate.extend(file.name for file in files)
    request.proto_file.extend(files)
    return request


@pytest.fixture
def hello_request() -> TypeReference:
    return message_type("HelloRequest")


@pytest.fixture
def hello_reply() -> TypeReference:
    return message_type("HelloReply")


@pytest.fixture
def greeter(hello_request, hello_reply) -> ServiceDescriptor:
    """The classic greeter service, with a single unary method."""
    return ServiceDescriptor(
        package="helloworld",
        proto_name="Greeter",
        methods=(MethodDescriptor("SayHello", hello_request, hello_reply),),
        file_name="helloworld.proto",
    )


@pytest.fixture
def streamer(hello_request, hello_reply) -> ServiceDescriptor:
    """A service with one method of every cardinality."""
    return ServiceDescriptor(
        package="helloworld",
        proto_name="Streamer",
        methods=(
            MethodDescriptor("Unary", hello_request, hello_reply),
            MethodDescriptor("ServerStream", hello_request, hello_reply, server_streaming=True),
            MethodDescriptor("ClientStream", hello_request, hello_reply, client_streaming=True),
            MethodDescriptor("BidiStream", hello_request, hello_reply, client_streaming=True, server_streaming=True),
        ),
        file_name="helloworld.proto",
        comments=(" Streams greetings.\n",),
    )


@pytest.fixture
def helloworld_file() -> descriptor_pb2.FileDescriptorProto:
    """A file descriptor equivalent to the `helloworld.proto` test schema, including comments."""
    file = descriptor_pb2.FileDescriptorProto(name="helloworld.proto", package="helloworld", syntax="proto3")

    request = file.message_type.add(name="HelloRequest")
    request.field.add(
        name="name",
        number=1,
        type=descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
        label=descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL,
    )
    request.nested_type.add(name="Options")

    file.message_type.add(name="HelloReply")

    service = file.service.add(name="Greeter")
    service.method.add(name="SayHello", input_type=".helloworld.HelloRequest", output_type=".helloworld.HelloReply")
    service.method.add(
        name="SayHelloAgain",
        input_type=".helloworld.HelloRequest.Options",
        output_type=".helloworld.HelloReply",
        server_streaming=True,
    )

    file.source_code_info.location.add(path=[6, 0], leading_comments=" The greeting service.\n")
    file.source_code_info.location.add(path=[6, 0, 2, 0], leading_comments=" Sends a greeting.\n")

    return file


@pytest.fixture
def proto_dir(tmp_path) -> Path:
    """A temporary include directory."""
    directory = tmp_path / "protos"
    directory.mkdir()
    return directory
