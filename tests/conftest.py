"""Pytest configuration and fixtures for grpc gateway generator tests."""

from __future__ import annotations

import sys
from pathlib import Path
from types import ModuleType

import grpc
import pytest
from google.protobuf import descriptor_pb2

from grpc_gateway_generator.ir import CompilationUnit, Method, Service

# Test directory structure
TESTS_DIR = Path(__file__).parent
PROTOS_DIR = TESTS_DIR / "protos"

PEER = "ipv6:[::1]:51234"


class FakeMessage:
    """Stands in for a protobuf message class of a `*_pb2` module."""

    def __init__(self, value: str = ""):
        self.value = value

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.value == self.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"

    def SerializeToString(self) -> bytes:
        return self.value.encode()

    @classmethod
    def FromString(cls, data: bytes):
        return cls(data.decode())


class FakeRpcError(grpc.RpcError):
    """A failure of a downstream call."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class FakeChannel:
    """Records every multi-callable and every call made on it.

    Unary calls echo the request back, converted into the response type.
    """

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.created: list[tuple[str, str]] = []
        self.calls: list[tuple[str, object, float | None, object]] = []

    def _multi_callable(self, kind: str, route: str, request_serializer, response_deserializer):
        self.created.append((kind, route))

        async def unary(request, timeout=None, metadata=None):
            self.calls.append((route, request, timeout, metadata))
            if self.error is not None:
                raise self.error
            return response_deserializer(request_serializer(request))

        def streaming(request, timeout=None, metadata=None):
            self.calls.append((route, request, timeout, metadata))
            return (kind, route, request)

        return unary if kind == "unary_unary" else streaming

    def unary_unary(self, route, request_serializer=None, response_deserializer=None):
        return self._multi_callable("unary_unary", route, request_serializer, response_deserializer)

    def unary_stream(self, route, request_serializer=None, response_deserializer=None):
        return self._multi_callable("unary_stream", route, request_serializer, response_deserializer)

    def stream_unary(self, route, request_serializer=None, response_deserializer=None):
        return self._multi_callable("stream_unary", route, request_serializer, response_deserializer)

    def stream_stream(self, route, request_serializer=None, response_deserializer=None):
        return self._multi_callable("stream_stream", route, request_serializer, response_deserializer)


class AbortError(Exception):
    """Raised by `FakeServicerContext.abort`, like grpc.aio does."""

    def __init__(self, code: grpc.StatusCode, details: str):
        super().__init__(code, details)
        self.code = code
        self.details = details


class FakeServicerContext:
    """The parts of `grpc.aio.ServicerContext` that generated code uses."""

    def __init__(self, peer: str = PEER, metadata: tuple[tuple[str, str], ...] = ()):
        self._peer = peer
        self._metadata = metadata

    def peer(self) -> str:
        return self._peer

    def invocation_metadata(self) -> tuple[tuple[str, str], ...]:
        return self._metadata

    async def abort(self, code: grpc.StatusCode, details: str = ""):
        raise AbortError(code, details)


def new_method(
    proto_name: str,
    input_type: str = "HelloRequest",
    output_type: str = "HelloReply",
    package: str = "helloworld",
    client_streaming: bool = False,
    server_streaming: bool = False,
    comments: tuple[str, ...] = (),
) -> Method:
    """Create a method whose types are declared in the compilation unit."""
    from grpc_gateway_generator.helper import to_snake_case

    return Method(
        name=to_snake_case(proto_name),
        proto_name=proto_name,
        input_type_name=input_type,
        input_wire_type_name=f".{package}.{input_type}",
        output_type_name=output_type,
        output_wire_type_name=f".{package}.{output_type}",
        client_streaming=client_streaming,
        server_streaming=server_streaming,
        comments=comments,
    )


def load_generated(source: str, name: str = "generated_grpc") -> ModuleType:
    """Execute generated source as a module.

    Args:
        source: The generated source
        name: The module name

    Returns:
        The module
    """
    module = ModuleType(name)
    exec(compile(source, f"<{name}>", "exec"), module.__dict__)
    return module


def greeter_file() -> descriptor_pb2.FileDescriptorProto:
    """A descriptor of `helloworld.proto`, as protoc sends it with source info."""
    file_proto = descriptor_pb2.FileDescriptorProto(name="helloworld.proto", package="helloworld")
    file_proto.message_type.add(name="HelloRequest")
    file_proto.message_type.add(name="HelloReply")

    service = file_proto.service.add(name="Greeter")
    service.method.add(name="SayHello", input_type=".helloworld.HelloRequest", output_type=".helloworld.HelloReply")

    file_proto.source_code_info.location.add(path=[6, 0], leading_comments=" The greeting service definition.\n")
    file_proto.source_code_info.location.add(path=[6, 0, 2, 0], leading_comments=" Sends a greeting\n More text\n")
    return file_proto


def area_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name="common/area.proto", package="common")
    rectangle = file_proto.message_type.add(name="Rectangle")
    rectangle.nested_type.add(name="Corner")
    return file_proto


def empty_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name="google/protobuf/empty.proto", package="google.protobuf")
    file_proto.message_type.add(name="Empty")
    return file_proto


@pytest.fixture
def greeter_service() -> Service:
    """The `helloworld.Greeter` service with a single unary method."""
    return Service(
        name="Greeter",
        proto_name="Greeter",
        package="helloworld",
        methods=(new_method("SayHello", comments=("Sends a greeting",)),),
        comments=("The greeting service definition.",),
    )


@pytest.fixture
def route_guide_service() -> Service:
    """A service with all four method shapes and a well-known type."""
    return Service(
        name="RouteGuide",
        proto_name="RouteGuide",
        package="routeguide",
        methods=(
            new_method("GetFeature", "Point", "Feature", package="routeguide"),
            new_method("ListFeatures", "Rectangle", "Feature", package="routeguide", server_streaming=True),
            new_method("RecordRoute", "Point", "RouteSummary", package="routeguide", client_streaming=True),
            new_method(
                "RouteChat",
                "RouteNote",
                "RouteNote",
                package="routeguide",
                client_streaming=True,
                server_streaming=True,
            ),
            Method(
                name="reset",
                proto_name="Reset",
                input_type_name="empty_pb2.Empty",
                input_wire_type_name=".google.protobuf.Empty",
                output_type_name="Feature",
                output_wire_type_name=".routeguide.Feature",
            ),
        ),
    )


@pytest.fixture
def greeter_unit(greeter_service) -> CompilationUnit:
    """The compilation unit of `helloworld.proto`."""
    return CompilationUnit(
        name="helloworld.proto",
        messages_module="helloworld_pb2",
        package="helloworld",
        services=(greeter_service,),
    )


@pytest.fixture
def route_guide_unit(route_guide_service) -> CompilationUnit:
    """The compilation unit of `route_guide.proto`."""
    return CompilationUnit(
        name="route_guide.proto",
        messages_module="route_guide_pb2",
        package="routeguide",
        services=(route_guide_service,),
    )


@pytest.fixture
def fake_messages(monkeypatch):
    """Register fake `*_pb2` modules for the test compilation units."""
    modules = {}

    for module_name, type_names in (
        ("helloworld_pb2", ["HelloRequest", "HelloReply"]),
        ("route_guide_pb2", ["Point", "Feature", "Rectangle", "RouteSummary", "RouteNote"]),
    ):
        module = ModuleType(module_name)
        for type_name in type_names:
            setattr(module, type_name, type(type_name, (FakeMessage,), {}))
        monkeypatch.setitem(sys.modules, module_name, module)
        modules[module_name] = module

    return modules
