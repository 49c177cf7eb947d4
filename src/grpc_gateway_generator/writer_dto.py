"""Data transfer objects that carry the derived names of services and methods to the generators."""

from __future__ import annotations

from dataclasses import dataclass

from grpc_gateway_generator import helper, resolver
from grpc_gateway_generator.ir import MalformedIRError, Method, Service
from grpc_gateway_generator.proto_types import RESERVED_MEMBER_NAMES, RPC_SHAPES, ArtifactKind


@dataclass(frozen=True)
class MethodInfo:
    """Everything the artifact generators need to know about one method.

    Attributes:
        name: The Python identifier of the method (e.g. "say_hello")
        proto_name: The declared method name (e.g. "SayHello")
        route: The wire route (e.g. "/helloworld.Greeter/SayHello")
        request_type: Resolved reference to the request type
        response_type: Resolved reference to the response type
        client_streaming: Whether the client streams requests
        server_streaming: Whether the server streams responses
        comments: Leading comment lines of the method
    """

    name: str
    proto_name: str
    route: str
    request_type: str
    response_type: str
    client_streaming: bool
    server_streaming: bool
    comments: tuple[str, ...]

    @property
    def is_unary(self) -> bool:
        return not self.client_streaming and not self.server_streaming

    @property
    def shape(self) -> str:
        """The grpc multi-callable/handler prefix, e.g. 'unary_unary'."""
        return RPC_SHAPES[(self.client_streaming, self.server_streaming)]

    @classmethod
    def create(cls, method: Method, service_full_name: str, proto_path: str) -> MethodInfo:
        """Resolve names and types of a method.

        Args:
            method: The method description
            service_full_name: The name the service is registered under
            proto_path: The name under which the message module is available

        Returns:
            The resolved method info
        """
        name = helper.sanitize_name(method.name)
        if name in RESERVED_MEMBER_NAMES:
            name = f"{name}_"
        helper.check_identifier(name, "method")
        if not method.proto_name:
            raise MalformedIRError(f"Empty wire name for method '{method.name}'.")

        request_type, response_type = resolver.replace_wellknown(proto_path, method)

        return cls(
            name=name,
            proto_name=method.proto_name,
            route=f"/{service_full_name}/{method.proto_name}",
            request_type=request_type,
            response_type=response_type,
            client_streaming=method.client_streaming,
            server_streaming=method.server_streaming,
            comments=method.comments,
        )


@dataclass(frozen=True)
class ServiceGenerationContext:
    """All derived names of one service, computed once and shared by the client, server and gateway generators.

    Attributes:
        service: The service description
        full_name: The name the service is registered under (e.g. "helloworld.Greeter")
        client_module: Namespace of the client (e.g. "greeter_client")
        server_module: Namespace of the server (e.g. "greeter_server")
        gateway_module: Namespace of the gateway (e.g. "greeter_gateway")
        client_name: The client class (e.g. "GreeterClient")
        servicer_name: The servicer base class (e.g. "Greeter")
        server_name: The registration wrapper (e.g. "GreeterServer")
        gateway_name: The gateway class (e.g. "GreeterGateway")
        methods: Resolved methods in declaration order
    """

    service: Service
    full_name: str
    client_module: str
    server_module: str
    gateway_module: str
    client_name: str
    servicer_name: str
    server_name: str
    gateway_name: str
    methods: tuple[MethodInfo, ...]

    @property
    def client_path(self) -> str:
        """Qualified reference to the client class, e.g. 'greeter_client.GreeterClient'."""
        return helper.parse_path(f"{self.client_module}.{self.client_name}")

    @property
    def servicer_path(self) -> str:
        """Qualified reference to the servicer base class, e.g. 'greeter_server.Greeter'."""
        return helper.parse_path(f"{self.server_module}.{self.servicer_name}")

    @classmethod
    def create(cls, service: Service, proto_path: str) -> ServiceGenerationContext:
        """Factory method to create the context with all derived names.

        Args:
            service: The service description
            proto_path: The name under which the message module is available

        Returns:
            A fully initialized ServiceGenerationContext
        """
        name = helper.check_identifier(service.name, "service")
        module_base = helper.naive_snake_case(name)

        return cls(
            service=service,
            full_name=service.full_name,
            client_module=f"{module_base}_{ArtifactKind.CLIENT}",
            server_module=f"{module_base}_{ArtifactKind.SERVER}",
            gateway_module=f"{module_base}_{ArtifactKind.GATEWAY}",
            client_name=f"{name}Client",
            servicer_name=name,
            server_name=f"{name}Server",
            gateway_name=f"{name}Gateway",
            methods=tuple(MethodInfo.create(method, service.full_name, proto_path) for method in service.methods),
        )
