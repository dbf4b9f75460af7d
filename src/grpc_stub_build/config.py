"""Code generation configuration."""

from __future__ import annotations

from collections.abc import Sequence

from grpc_stub_build import run
from grpc_stub_build.generator import GeneratorFlags, ServiceGenerator


class Config:
    """Code generation configuration.

    The configuration shares its flags with its service generator, so that changes made through
    the `enable_*` methods are seen by the generator, even after generation has started.
    """

    def __init__(self):
        """Initialize a configuration that generates clients, but no servers."""
        self._flags = GeneratorFlags()
        self.service_generator = ServiceGenerator(self._flags)

        self.messages = True
        self.format = False

    @classmethod
    def from_parameter(cls, parameter: str) -> Config:
        """Create a configuration from protoc plugin parameters, e.g. `server,client=false`.

        Raises:
            ValueError: If the parameters are malformed.
        """
        config = cls()
        run.apply_parameter(config._flags, parameter)
        return config

    @property
    def flags(self) -> GeneratorFlags:
        """The flags that are shared with the service generator."""
        return self._flags

    def enable_client(self, enable: bool = True) -> Config:
        """Enable gRPC client code generation."""
        self._flags.build_client = enable
        return self

    def enable_server(self, enable: bool = True) -> Config:
        """Enable gRPC server code generation."""
        self._flags.build_server = enable
        return self

    def enable_relative_imports(self, enable: bool = True) -> Config:
        """Import message modules relative to the generated module instead of absolutely."""
        self._flags.relative_imports = enable
        return self

    def emit_messages(self, enable: bool = True) -> Config:
        """Also generate the `*_pb2.py` message modules when building."""
        self.messages = enable
        return self

    def format_output(self, enable: bool = True) -> Config:
        """Format the generated stubs with ruff when building."""
        self.format = enable
        return self

    def build(self, protos: Sequence[str], includes: Sequence[str], output_dir: str) -> list[str]:
        """Generate code for a set of schema files.

        Args:
            protos (Sequence[str]): The schema files.
            includes (Sequence[str]): The include paths that the schema files and their imports are found in.
            output_dir (str): The directory to write the generated modules to.

        Raises:
            ProtocError: If protoc fails to compile the schema files.

        Returns:
            list[str]: The paths of the written files.
        """
        return run.compile_protos(
            protos,
            includes,
            output_dir,
            self.service_generator,
            python_out=self.messages,
            format_output=self.format,
        )
