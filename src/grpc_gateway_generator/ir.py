"""Decoded, in-memory description of the services of a compilation unit."""

from __future__ import annotations

from dataclasses import dataclass, field


class MalformedIRError(Exception):
    """Raised when the service description cannot be turned into valid code."""

    pass


@dataclass(frozen=True)
class Method:
    """A single RPC method.

    Attributes:
        name: The Python identifier of the method (e.g. "say_hello").
        proto_name: The method name as declared in the schema (e.g. "SayHello").
        input_type_name: Reference to the request type, relative to the message module.
        input_wire_type_name: Fully-qualified wire type of the request (e.g. ".helloworld.HelloRequest").
        output_type_name: Reference to the response type, relative to the message module.
        output_wire_type_name: Fully-qualified wire type of the response.
        client_streaming: Whether the client sends a stream of requests.
        server_streaming: Whether the server replies with a stream of responses.
        comments: Leading comment lines of the method.
    """

    name: str
    proto_name: str
    input_type_name: str
    input_wire_type_name: str
    output_type_name: str
    output_wire_type_name: str
    client_streaming: bool = False
    server_streaming: bool = False
    comments: tuple[str, ...] = ()

    @property
    def is_unary(self) -> bool:
        return not self.client_streaming and not self.server_streaming


@dataclass(frozen=True)
class Service:
    """A service and its ordered methods."""

    name: str
    proto_name: str
    package: str = ""
    methods: tuple[Method, ...] = ()
    comments: tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        """The name the service is registered under on the wire."""
        if self.package:
            return f"{self.package}.{self.proto_name}"
        return self.proto_name


@dataclass(frozen=True)
class CompilationUnit:
    """One schema file with all the services it declares."""

    name: str
    messages_module: str
    package: str = ""
    services: tuple[Service, ...] = field(default_factory=tuple)
