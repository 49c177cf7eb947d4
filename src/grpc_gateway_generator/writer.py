"""Drive code generation for the services of a compilation unit."""

from __future__ import annotations

import logging

from grpc_gateway_generator import client, gateway, helper, resolver, server
from grpc_gateway_generator.ir import CompilationUnit, MalformedIRError, Service
from grpc_gateway_generator.proto_types import MESSAGES_ALIAS, WELL_KNOWN_PACKAGE
from grpc_gateway_generator.writer_dto import ServiceGenerationContext

logger = logging.getLogger(__name__)


class ServiceGenerator:
    """Accumulates client, server and gateway code for the services of one compilation unit.

    `generate` is called once per service and `finalize` once per compilation unit. The three
    buffers are flushed in the order clients, servers, gateways, so that every namespace is
    defined before the namespaces that refer to it.
    """

    def __init__(self, proto_path: str = MESSAGES_ALIAS):
        """Initialize empty buffers.

        Args:
            proto_path (str): The name under which generated code refers to the message module.
        """
        self.proto_path = proto_path
        self.clients: list[str] = []
        self.servers: list[str] = []
        self.gateways: list[str] = []

    def generate(self, service: Service, _buf: list[str]) -> None:
        """Generate the code for one service and add it to the buffers.

        Args:
            service (Service): The service to generate code for.
            _buf (list[str]): The output of the compilation unit. Only written to by `finalize`.

        Raises:
            MalformedIRError: If the service cannot be turned into valid code.
        """
        context = ServiceGenerationContext.create(service, self.proto_path)

        self.clients.append(client.generate(context))
        self.servers.append(server.generate(context))
        self.gateways.append(gateway.generate(context))

        logger.debug("Generated '%s' with %d method(s).", context.full_name, len(context.methods))

    def finalize(self, buf: list[str]) -> None:
        """Flush every non-empty buffer into the output, then clear it.

        Args:
            buf (list[str]): The output of the compilation unit.
        """
        for fragments in (self.clients, self.servers, self.gateways):
            if fragments:
                buf.append("\n\n".join(fragments))
                fragments.clear()

    def reset(self) -> None:
        """Drop everything accumulated for the current compilation unit."""
        for fragments in (self.clients, self.servers, self.gateways):
            fragments.clear()


class Writer:
    """Writes the generated module for one compilation unit."""

    def __init__(self, unit: CompilationUnit, generator: ServiceGenerator | None = None):
        """Initialize the writer with a compilation unit.

        Args:
            unit (CompilationUnit): The compilation unit to write a module for.
            generator (ServiceGenerator | None): The generation driver to use. Defaults to a fresh one.
        """
        self._unit = unit
        self._generator = generator if generator is not None else ServiceGenerator()

        self.docstring = f'"""Generated gRPC clients, servers and gateways for `{unit.name}`."""'

    @property
    def imports(self) -> list[str]:
        """The import lines of the generated module."""
        messages_module = helper.parse_path(self._unit.messages_module)

        imports = ["from __future__ import annotations", "", "import logging"]

        if any(method.client_streaming for service in self._unit.services for method in service.methods):
            imports.append("from collections.abc import AsyncIterable")

        imports.extend(["", "import grpc"])

        for module in resolver.well_known_modules(self._unit.services):
            imports.append(f"from {WELL_KNOWN_PACKAGE} import {module}")

        if "." in messages_module:
            package, module = messages_module.rsplit(".", 1)
            imports.append(f"from {package} import {module} as {self._generator.proto_path}")
        else:
            imports.append(f"import {messages_module} as {self._generator.proto_path}")

        return imports

    def dumps(self) -> str:
        """Generates the string output of the module.

        Returns:
            str: The output string. Empty, if the compilation unit declares no services.
        """
        buf: list[str] = []

        try:
            for service in self._unit.services:
                self._generator.generate(service, buf)
        except MalformedIRError:
            logger.error("Cannot generate code for '%s'.", self._unit.name)
            self._generator.reset()
            raise

        self._generator.finalize(buf)

        if not buf:
            logger.info("No services in '%s', nothing to write.", self._unit.name)
            return ""

        out: list[str] = []
        out.append(self.docstring)
        out.append("")
        out.extend(self.imports)
        out.append("")
        out.append("logger = logging.getLogger(__name__)")
        out.append("")
        out.append("")
        out.extend(gateway.generate_metadata_function())
        out.append("")
        out.append("")
        out.append("\n\n".join(buf))

        return "\n".join(out)
