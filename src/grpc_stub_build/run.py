"""Top-level module for stub generation.

This module drives a service generator the way a schema compiler does: once per service and once per file.
Requests either come from protoc, when running as a plugin, or are assembled from a descriptor set that
the bundled protoc of `grpcio-tools` writes.
"""

from __future__ import annotations

import argparse
import glob
import logging
import os.path
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

import grpc_tools
from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2
from grpc_tools import protoc

from grpc_stub_build.descriptors import PROTO_SUFFIX, TypeIndex, services_from_file
from grpc_stub_build.generator import GeneratorFlags, ServiceGenerator, ServiceGeneratorHook
from grpc_stub_build.resolver import InvalidPathError
from grpc_stub_build.scope import RenderError

logger = logging.getLogger(__name__)

STUB_SUFFIX = "_pb2_grpc.py"

_TRUE_VALUES = frozenset(("true", "1", "yes", "on"))
_FALSE_VALUES = frozenset(("false", "0", "no", "off"))
_PARAMETER_FLAGS = {
    "client": "build_client",
    "server": "build_server",
    "relative_imports": "relative_imports",
}


class ProtocError(Exception):
    """Raised when protoc fails to compile schema files."""


def parse_parameter(parameter: str) -> dict[str, bool]:
    """Parse protoc plugin parameters.

    Parameters are separated by commas. Each is either a bare key, which enables the flag,
    or a `key=value` pair with a boolean value, e.g. `server,client=false`.

    Args:
        parameter (str): The parameter string that protoc passed along.

    Raises:
        ValueError: If a key is unknown or a value is not a boolean.

    Returns:
        dict[str, bool]: The flag values, keyed by the `GeneratorFlags` attribute name.
    """
    values: dict[str, bool] = {}

    for part in parameter.split(","):
        part = part.strip()
        if not part:
            continue

        key, _, raw_value = part.partition("=")
        key = key.strip()
        raw_value = raw_value.strip().lower() or "true"

        if key not in _PARAMETER_FLAGS:
            raise ValueError(f"Unknown parameter '{key}'. Known parameters: {', '.join(_PARAMETER_FLAGS)}.")

        if raw_value in _TRUE_VALUES:
            values[_PARAMETER_FLAGS[key]] = True
        elif raw_value in _FALSE_VALUES:
            values[_PARAMETER_FLAGS[key]] = False
        else:
            raise ValueError(f"The value '{raw_value}' of parameter '{key}' is not a boolean.")

    return values


def apply_parameter(flags: GeneratorFlags, parameter: str) -> None:
    """Apply protoc plugin parameters to a set of flags.

    Raises:
        ValueError: If the parameters are malformed.
    """
    for name, value in parse_parameter(parameter).items():
        setattr(flags, name, value)


def stub_file_name(proto_name: str) -> str:
    """The name of the module that stubs for a schema file are written to.

    E.g. `foo/hello-world.proto` becomes `foo/hello_world_pb2_grpc.py`, next to the message module
    `foo/hello_world_pb2.py`.
    """
    stem = proto_name[: -len(PROTO_SUFFIX)] if proto_name.endswith(PROTO_SUFFIX) else proto_name
    directory, _, base = stem.rpartition("/")
    base = base.replace("-", "_")
    return f"{directory}/{base}{STUB_SUFFIX}" if directory else f"{base}{STUB_SUFFIX}"


def generate_files(request: plugin_pb2.CodeGeneratorRequest, generator: ServiceGeneratorHook) -> dict[str, str]:
    """Generate stubs for all requested files that declare services.

    Every service of a file is accumulated, in declaration order, and the file is flushed once.

    Args:
        request (plugin_pb2.CodeGeneratorRequest): The request. Its `proto_file` holds all requested files
            and their dependencies.
        generator (ServiceGeneratorHook): The service generator.

    Raises:
        InvalidPathError: If a message type cannot be referenced.
        RenderError: If the generated stubs of a file are inconsistent.
        LookupError: If a method refers to an unknown message type.

    Returns:
        dict[str, str]: The generated modules, keyed by their file names.
    """
    index = TypeIndex.from_files(request.proto_file)
    files_by_name = {file.name: file for file in request.proto_file}

    outputs: dict[str, str] = {}

    for name in request.file_to_generate:
        file = files_by_name.get(name)

        if file is None:
            raise LookupError(f"The requested file '{name}' is missing from the request.")

        services = services_from_file(file, index)
        if not services:
            logger.debug("Skipping '%s', which declares no services.", name)
            continue

        for service in services:
            generator.accumulate(service)

        try:
            text = generator.flush()

        except RenderError as e:
            raise RenderError(f"{name}: {e}") from e

        if not text:
            continue

        docstring = f'"""This is an automatically generated stub for `{name}`. Do not edit."""'
        outputs[stub_file_name(name)] = f"{docstring}\n\n{text}"

    return outputs


def generate_response(
    request: plugin_pb2.CodeGeneratorRequest, generator: ServiceGeneratorHook
) -> plugin_pb2.CodeGeneratorResponse:
    """Generate a protoc plugin response.

    Generation is all or nothing: if any file fails, the response only carries the error, and protoc aborts.

    Args:
        request (plugin_pb2.CodeGeneratorRequest): The request.
        generator (ServiceGeneratorHook): The service generator.

    Returns:
        plugin_pb2.CodeGeneratorResponse: The response.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    try:
        outputs = generate_files(request, generator)

    except (InvalidPathError, RenderError, LookupError, ValueError) as e:
        logger.error("Stub generation failed: %s", e)
        response.error = str(e)
        return response

    for name, content in outputs.items():
        out = response.file.add()
        out.name = name
        out.content = content

    return response


def format_outputs(raw_input: str) -> str:
    """Formats raw input using ruff.

    Formatting is best effort: if ruff is missing or fails, the input is returned unchanged.

    Args:
        raw_input (str): The unformatted input.

    Returns:
        str: The formatted outputs.
    """
    with tempfile.NamedTemporaryFile(mode="w", suffix=".py", delete=False, encoding="utf-8") as f:
        temp_path = Path(f.name)
        f.write(raw_input)

    try:
        # Fix import ordering first, then format.
        subprocess.run(
            ["ruff", "check", "--fix", "--select", "I", str(temp_path)],
            capture_output=True,
            check=False,
        )
        subprocess.run(
            ["ruff", "format", str(temp_path)],
            capture_output=True,
            check=True,
        )
        return temp_path.read_text(encoding="utf-8")

    except FileNotFoundError:
        logger.warning("ruff not found, skipping formatting of generated stubs.")
        return raw_input

    except subprocess.CalledProcessError as e:
        logger.error("Ruff formatting failed: %s", e)
        logger.error("Stderr: %s", e.stderr.decode("utf-8", errors="replace"))
        return raw_input

    finally:
        temp_path.unlink(missing_ok=True)


def _virtual_name(proto: str, includes: Sequence[str]) -> str:
    """The name protoc knows a schema file by, which is its path relative to the first include containing it."""
    proto_path = os.path.abspath(proto)

    for include in includes:
        include_path = os.path.abspath(include)

        if os.path.commonpath([proto_path, include_path]) == include_path:
            return Path(os.path.relpath(proto_path, include_path)).as_posix()

    return Path(proto).as_posix()


def well_known_include() -> str:
    """The include path of the well known protos, as bundled with `grpcio-tools`."""
    return os.path.join(os.path.dirname(grpc_tools.__file__), "_proto")


def compile_protos(
    protos: Sequence[str],
    includes: Sequence[str],
    output_dir: str,
    generator: ServiceGeneratorHook,
    python_out: bool = True,
    format_output: bool = False,
) -> list[str]:
    """Compile schema files with protoc and generate stubs for their services.

    Args:
        protos (Sequence[str]): The schema files.
        includes (Sequence[str]): The include paths.
        output_dir (str): The directory to write all generated modules to.
        generator (ServiceGeneratorHook): The service generator.
        python_out (bool): Whether protoc also generates the `*_pb2.py` message modules.
        format_output (bool): Whether the stubs are formatted with ruff.

    Raises:
        ProtocError: If protoc fails.

    Returns:
        list[str]: The paths of the written stub files.
    """
    os.makedirs(output_dir, exist_ok=True)

    with tempfile.TemporaryDirectory() as temp_dir:
        descriptor_path = os.path.join(temp_dir, "descriptors.pb")

        args = ["grpc_tools.protoc"]
        args += [f"-I{include}" for include in includes]
        args += [
            f"-I{well_known_include()}",
            "--include_imports",
            "--include_source_info",
            f"--descriptor_set_out={descriptor_path}",
        ]
        if python_out:
            args.append(f"--python_out={output_dir}")
        args += list(protos)

        logger.info("Compiling %d schema file(s) with protoc.", len(protos))
        logger.debug("protoc arguments: %s", args)

        if protoc.main(args) != 0:
            raise ProtocError(f"protoc failed to compile {', '.join(protos)}.")

        descriptor_set = descriptor_pb2.FileDescriptorSet()
        descriptor_set.ParseFromString(Path(descriptor_path).read_bytes())

    request = plugin_pb2.CodeGeneratorRequest()
    request.file_to_generate.extend(_virtual_name(proto, includes) for proto in protos)
    request.proto_file.extend(descriptor_set.file)

    written: list[str] = []

    for name, content in generate_files(request, generator).items():
        if format_output:
            content = format_outputs(content)

        output_path = os.path.join(output_dir, *name.split("/"))
        os.makedirs(os.path.dirname(output_path), exist_ok=True)

        with open(output_path, "w", encoding="utf8") as output_file:
            output_file.write(content)

        logger.info("Wrote stubs to '%s'.", output_path)
        written.append(output_path)

    return written


def find_protos(paths: Sequence[str], excludes: Sequence[str], root_directory: str, recursive: bool) -> list[str]:
    """Find schema files from paths, directories and glob expressions.

    Args:
        paths (Sequence[str]): Paths, directories or glob expressions.
        excludes (Sequence[str]): Paths or glob expressions to exclude.
        root_directory (str): The directory that relative paths are based on.
        recursive (bool): Whether directories and `**` globs are searched recursively.

    Returns:
        list[str]: The sorted paths of all found schema files.
    """
    excluded_paths: set[str] = set()
    for exclude in excludes:
        exclude_path = os.path.join(root_directory, exclude)
        # Handle both specific files and glob patterns
        if os.path.isfile(exclude_path):
            excluded_paths.add(os.path.abspath(exclude_path))
        else:
            excluded_paths.update(os.path.abspath(p) for p in glob.glob(exclude_path, recursive=recursive))

    search_paths: set[str] = set()
    for path in paths:
        search_path = os.path.join(root_directory, path)

        if recursive and os.path.isdir(search_path):
            for root, _, files in os.walk(search_path):
                for file in files:
                    if file.endswith(PROTO_SUFFIX):
                        search_paths.add(os.path.abspath(os.path.join(root, file)))
        elif os.path.isdir(search_path):
            for file in os.listdir(search_path):
                file_path = os.path.join(search_path, file)
                if os.path.isfile(file_path) and file.endswith(PROTO_SUFFIX):
                    search_paths.add(os.path.abspath(file_path))
        else:
            search_paths.update(
                os.path.abspath(p) for p in glob.glob(search_path, recursive=recursive) if p.endswith(PROTO_SUFFIX)
            )

    return sorted(search_paths - excluded_paths)


def run(args: argparse.Namespace, root_directory: str) -> list[str]:
    """Run the stub generator on a set of paths that point to *.proto schemas.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the stub generator.
        root_directory (str): The directory, from which the generator is executed.

    Raises:
        ProtocError: If protoc fails.

    Returns:
        list[str]: The paths of the written stub files.
    """
    protos = find_protos(args.paths, args.excludes, root_directory, args.recursive)

    if not protos:
        logger.warning("No schema files found for %s.", ", ".join(args.paths))
        return []

    includes = [os.path.join(root_directory, p) for p in args.import_paths] or [root_directory]
    output_dir = os.path.join(root_directory, args.output_dir)

    flags = GeneratorFlags(
        build_client=args.build_client,
        build_server=args.build_server,
        relative_imports=args.relative_imports,
    )

    return compile_protos(
        protos,
        includes,
        output_dir,
        ServiceGenerator(flags),
        python_out=args.messages,
        format_output=args.format,
    )
