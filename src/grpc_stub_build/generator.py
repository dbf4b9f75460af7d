"""The service generator that a schema compiler calls back into.

Rather than outputting each service as soon as it is generated, all services of one schema file are generated into
a shared scope. The scope works like a simplified syntax tree, which makes it easy to add declarations to modules
that earlier services already created: the clients and servers of all services end up in a single `client` and
`server` module. Only once all services of the file were added, the scope is rendered and reset.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Protocol

from grpc_stub_build.client import ClientGenerator
from grpc_stub_build.descriptors import ServiceDescriptor
from grpc_stub_build.scope import RenderError, Scope
from grpc_stub_build.server import ServerGenerator

logger = logging.getLogger(__name__)


@dataclass
class GeneratorFlags:
    """Flags that select what is generated.

    One instance is shared between a `Config` and its generators. Changes are visible to the next generated service.
    """

    build_client: bool = True
    build_server: bool = False
    relative_imports: bool = False


class GeneratorState(enum.Enum):
    """Whether a generator holds services that were not flushed yet."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"


class ServiceGeneratorHook(Protocol):
    """The callbacks that a schema compiler drives, once per service and once per file."""

    def accumulate(self, service: ServiceDescriptor) -> None:
        """Add a service to the current file."""
        ...

    def flush(self) -> str:
        """Render the current file and start a new one."""
        ...


class ServiceGenerator:
    """Generates client and server stubs into a shared scope, and flushes them once per file."""

    def __init__(self, flags: GeneratorFlags | None = None):
        """Initialize the generator.

        Args:
            flags (GeneratorFlags | None): The shared flags. Defaults to a new set of default flags.
        """
        self.flags = flags if flags is not None else GeneratorFlags()
        self.client = ClientGenerator(self.flags)
        self.server = ServerGenerator(self.flags)
        self.root_scope = Scope()
        self.state = GeneratorState.IDLE
        self._services: list[str] = []

    def accumulate(self, service: ServiceDescriptor) -> None:
        """Generate the enabled stubs of a service into the shared scope.

        Nothing is rendered here; see `flush`.

        Args:
            service (ServiceDescriptor): The service.

        Raises:
            InvalidPathError: If a sub-generator references a malformed type path. Everything accumulated
                for the current file is discarded in that case.
        """
        logger.debug(
            "Accumulating service '%s' (client: %s, server: %s).",
            service.full_name,
            self.flags.build_client,
            self.flags.build_server,
        )

        self.state = GeneratorState.ACCUMULATING
        self._services.append(service.full_name)

        try:
            if self.flags.build_client:
                self.client.generate(service, self.root_scope)

            if self.flags.build_server:
                self.server.generate(service, self.root_scope)

        except Exception:
            # The file is unusable; drop what was accumulated for it.
            self._reset()
            raise

    def flush(self) -> str:
        """Render everything accumulated since the last flush, and reset the scope.

        The scope is reset even if rendering fails, so that nothing of this file leaks into the next one.

        Raises:
            RenderError: If the accumulated scope is inconsistent. The message names the accumulated services.

        Returns:
            str: The rendered source. Empty, if nothing was accumulated.
        """
        try:
            text = self.root_scope.render()

        except RenderError as e:
            raise RenderError(f"Rendering {', '.join(self._services)} failed: {e}") from e

        finally:
            self._reset()

        logger.debug("Flushed %d character(s) of generated source.", len(text))
        return text

    def _reset(self) -> None:
        self.root_scope.reset()
        self.state = GeneratorState.IDLE
        self._services = []

    on_service = accumulate
    on_finalize = flush
