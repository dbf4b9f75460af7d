"""Command-line interfaces for generating gRPC stubs for *.proto schemas.

Notes:
    - `grpc-stub-build` compiles schema files with the protoc that `grpcio-tools` bundles.
    - `protoc-gen-grpc_stub` is a protoc plugin, used as `protoc --grpc_stub_out=<dir> --grpc_stub_opt=server ...`.
"""

from __future__ import annotations

import argparse
import logging
import os.path
import sys
from collections.abc import Sequence

from google.protobuf.compiler import plugin_pb2

from grpc_stub_build.config import Config
from grpc_stub_build.run import generate_response, run

logger = logging.getLogger(__name__)


def _add_recursive_argument(parser: argparse.ArgumentParser):
    """Add a recursive argument to a parser.

    Args:
        parser (argparse.ArgumentParser): The parser to add the argument to.
    """
    parser.add_argument(
        "-r",
        "--recursive",
        dest="recursive",
        default=False,
        action="store_true",
        help="recursively search for *.proto files with a given glob expression.",
    )


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Generate gRPC client and server stubs for proto schema files.")

    parser.add_argument(
        "-p",
        "--paths",
        type=str,
        nargs="+",
        default=["**/*.proto"],
        help="path or glob expressions that match *.proto files for stub generation.",
    )

    parser.add_argument(
        "-e",
        "--excludes",
        type=str,
        nargs="+",
        default=[],
        help="path or glob expressions to exclude from path matches.",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default="",
        help="directory to write all generated modules to; defaults to the working directory.",
    )

    parser.add_argument(
        "-I",
        "--import-path",
        dest="import_paths",
        type=str,
        nargs="+",
        default=[],
        help="include paths that schema files and their imports are resolved in; defaults to the working directory.",
    )

    parser.add_argument(
        "--no-client",
        dest="build_client",
        default=True,
        action="store_false",
        help="skip generation of client stubs.",
    )

    parser.add_argument(
        "--server",
        dest="build_server",
        default=False,
        action="store_true",
        help="generate servicer base classes and their registration functions.",
    )

    parser.add_argument(
        "--relative-imports",
        dest="relative_imports",
        default=False,
        action="store_true",
        help="import message modules relative to the generated stubs.",
    )

    parser.add_argument(
        "--no-messages",
        dest="messages",
        default=True,
        action="store_false",
        help="do not generate the *_pb2.py message modules.",
    )

    parser.add_argument(
        "--format",
        dest="format",
        default=False,
        action="store_true",
        help="format generated stubs with ruff.",
    )

    _add_recursive_argument(parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the stub generator.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    logging.basicConfig(level=logging.INFO)

    root_directory = os.getcwd()
    logging.info("Working from root directory: %s", root_directory)

    parser = setup_parser()
    args = parser.parse_args(argv)

    run(args, root_directory)

    return 0


def plugin_main() -> int:
    """Entry point of the protoc plugin.

    Reads a `CodeGeneratorRequest` from stdin and writes a `CodeGeneratorResponse` to stdout.
    Logs go to stderr, since stdout carries the response.

    Returns:
        int: Error code.
    """
    logging.basicConfig(level=logging.WARNING)

    request = plugin_pb2.CodeGeneratorRequest()
    request.ParseFromString(sys.stdin.buffer.read())

    try:
        config = Config.from_parameter(request.parameter)

    except ValueError as e:
        logger.error("Invalid plugin parameter: %s", e)
        response = plugin_pb2.CodeGeneratorResponse(error=str(e))

    else:
        response = generate_response(request, config.service_generator)

    sys.stdout.buffer.write(response.SerializeToString())
    sys.stdout.buffer.flush()

    return 0
