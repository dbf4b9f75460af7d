"""Tests for the client and server sub-generators."""

from __future__ import annotations

import pytest

from grpc_stub_build.client import ClientGenerator
from grpc_stub_build.descriptors import MethodDescriptor, ServiceDescriptor, TypeReference
from grpc_stub_build.generator import GeneratorFlags
from grpc_stub_build.resolver import InvalidPathError
from grpc_stub_build.scope import Scope
from grpc_stub_build.server import ServerGenerator, registration_function_name

GREETER_CLIENT = '''from helloworld_pb2 import HelloRequest
from helloworld_pb2 import HelloReply


class client:
    class Greeter:
        """Client for `helloworld.Greeter`."""

        def __init__(self, channel):
            """Constructor.

            Args:
                channel: A grpc.Channel.
            """
            self.say_hello = channel.unary_unary(
                "/helloworld.Greeter/SayHello",
                request_serializer=HelloRequest.SerializeToString,
                response_deserializer=HelloReply.FromString,
            )
'''

GREETER_SERVER = '''import grpc
from helloworld_pb2 import HelloRequest
from helloworld_pb2 import HelloReply


class server:
    class Greeter:
        """Base class for servers of `helloworld.Greeter`."""

        def say_hello(self, request, context):
            """Missing associated documentation comment in .proto file."""
            context.set_code(grpc.StatusCode.UNIMPLEMENTED)
            context.set_details("Method not implemented!")
            raise NotImplementedError("Method not implemented!")

    @staticmethod
    def add_greeter_to_server(servicer, grpc_server):
        """Register a `Greeter` servicer with a grpc.Server."""
        rpc_method_handlers = {
            "SayHello": grpc.unary_unary_rpc_method_handler(
                servicer.say_hello,
                request_deserializer=HelloRequest.FromString,
                response_serializer=HelloReply.SerializeToString,
            ),
        }
        generic_handler = grpc.method_handlers_generic_handler("helloworld.Greeter", rpc_method_handlers)
        grpc_server.add_generic_rpc_handlers((generic_handler,))
'''


@pytest.fixture
def flags() -> GeneratorFlags:
    return GeneratorFlags()


class TestClientGenerator:
    """Test generation of client classes."""

    def test_greeter(self, flags, greeter):
        scope = Scope()
        ClientGenerator(flags).generate(greeter, scope)

        assert scope.render() == GREETER_CLIENT

    def test_cardinalities(self, flags, streamer):
        scope = Scope()
        ClientGenerator(flags).generate(streamer, scope)
        text = scope.render()

        assert "self.unary = channel.unary_unary(" in text
        assert "self.server_stream = channel.unary_stream(" in text
        assert "self.client_stream = channel.stream_unary(" in text
        assert "self.bidi_stream = channel.stream_stream(" in text
        assert '"""Streams greetings."""' in text
        compile(text, "<client>", "exec")

    def test_services_accumulate_into_one_module(self, flags, greeter, streamer):
        scope = Scope()
        generator = ClientGenerator(flags)
        generator.generate(greeter, scope)
        generator.generate(streamer, scope)
        text = scope.render()

        assert text.count("class client:") == 1
        assert text.index("class Greeter:") < text.index("class Streamer:")
        assert text.count("from helloworld_pb2 import HelloRequest") == 1

    def test_service_without_methods(self, flags):
        scope = Scope()
        ClientGenerator(flags).generate(ServiceDescriptor(package="empty", proto_name="Nothing"), scope)

        compile(scope.render(), "<client>", "exec")

    def test_relative_imports_are_read_at_generation_time(self, greeter):
        flags = GeneratorFlags()
        generator = ClientGenerator(flags)
        scope = Scope()

        flags.relative_imports = True
        generator.generate(greeter, scope)

        assert scope.render().startswith("from .helloworld_pb2 import HelloRequest\n")

    def test_keyword_names_are_sanitized(self, flags, hello_request, hello_reply):
        service = ServiceDescriptor(
            package="kw",
            proto_name="class",
            methods=(MethodDescriptor("Import", hello_request, hello_reply),),
        )
        scope = Scope()
        ClientGenerator(flags).generate(service, scope)
        text = scope.render()

        assert "class class_:" in text
        assert "self.import_ = channel.unary_unary(" in text
        assert '"/kw.class/Import"' in text
        compile(text, "<client>", "exec")

    def test_invalid_type_path_names_the_method(self, flags, hello_reply):
        broken = TypeReference(module_path=("^",), name_path=("^",))
        service = ServiceDescriptor(
            package="helloworld",
            proto_name="Greeter",
            methods=(MethodDescriptor("SayHello", broken, hello_reply),),
        )

        with pytest.raises(InvalidPathError, match="/helloworld.Greeter/SayHello"):
            ClientGenerator(flags).generate(service, Scope())


class TestServerGenerator:
    """Test generation of servicer classes and registration functions."""

    def test_greeter(self, flags, greeter):
        scope = Scope()
        ServerGenerator(flags).generate(greeter, scope)

        assert scope.render() == GREETER_SERVER

    def test_cardinalities(self, flags, streamer):
        scope = Scope()
        ServerGenerator(flags).generate(streamer, scope)
        text = scope.render()

        assert "def unary(self, request, context):" in text
        assert "def server_stream(self, request, context):" in text
        assert "def client_stream(self, request_iterator, context):" in text
        assert "def bidi_stream(self, request_iterator, context):" in text
        assert '"ServerStream": grpc.unary_stream_rpc_method_handler(' in text
        assert '"ClientStream": grpc.stream_unary_rpc_method_handler(' in text
        assert '"BidiStream": grpc.stream_stream_rpc_method_handler(' in text
        compile(text, "<server>", "exec")

    def test_method_comments_become_docstrings(self, flags, hello_request, hello_reply):
        service = ServiceDescriptor(
            package="helloworld",
            proto_name="Greeter",
            methods=(
                MethodDescriptor(
                    "SayHello",
                    hello_request,
                    hello_reply,
                    comments=(' Says "hello".\n Twice.\n',),
                ),
            ),
        )
        scope = Scope()
        ServerGenerator(flags).generate(service, scope)
        text = scope.render()

        assert '            """Says "hello".\n            Twice.\n            """' in text
        compile(text, "<server>", "exec")

    def test_registration_function_name(self, greeter):
        assert registration_function_name(greeter) == "add_greeter_to_server"

    def test_grpc_is_imported_once(self, flags, greeter, streamer):
        scope = Scope()
        generator = ServerGenerator(flags)
        generator.generate(greeter, scope)
        generator.generate(streamer, scope)

        assert scope.render().count("import grpc\n") == 1
