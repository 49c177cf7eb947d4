"""Tests for the gateway synthesizer and the behavior of generated gateways."""

from __future__ import annotations

import asyncio
import logging

import grpc
import pytest

from grpc_gateway_generator import gateway
from grpc_gateway_generator.ir import CompilationUnit, Service
from grpc_gateway_generator.writer import Writer
from grpc_gateway_generator.writer_dto import MethodInfo, ServiceGenerationContext

from conftest import PEER, AbortError, FakeChannel, FakeRpcError, FakeServicerContext, load_generated, new_method


@pytest.fixture
def greeter(greeter_unit, fake_messages):
    return load_generated(Writer(greeter_unit).dumps())


@pytest.fixture
def route_guide(route_guide_unit, fake_messages):
    return load_generated(Writer(route_guide_unit).dumps())


class TestSelectStrategy:
    """Test the choice between forwarding and stubbing."""

    @pytest.mark.parametrize(
        "client_streaming, server_streaming, strategy",
        [
            (False, False, gateway.Strategy.UNARY),
            (False, True, gateway.Strategy.STREAMING_STUB),
            (True, False, gateway.Strategy.STREAMING_STUB),
            (True, True, gateway.Strategy.STREAMING_STUB),
        ],
    )
    def test_strategy(self, client_streaming, server_streaming, strategy):
        method = new_method("Chat", client_streaming=client_streaming, server_streaming=server_streaming)
        info = MethodInfo.create(method, "helloworld.Greeter", "_pb2")

        assert gateway.select_strategy(info) == strategy


class TestGatewayFragment:
    """Test the source of the gateway namespace."""

    def test_greeter(self, greeter_service):
        source = gateway.generate(ServiceGenerationContext.create(greeter_service, "_pb2"))

        assert source.startswith("class greeter_gateway:\n")
        assert "class GreeterGateway(greeter_server.Greeter):" in source
        assert "self.channel = channel" in source
        assert (
            "async def say_hello(self, request: _pb2.HelloRequest, context: grpc.aio.ServicerContext)"
            " -> _pb2.HelloReply:" in source
        )
        assert "return await greeter_client.GreeterClient(self.channel).say_hello(request, metadata=metadata)" in source
        assert '"""Sends a greeting"""' in source

    def test_one_method_per_rpc_in_order(self, route_guide_service):
        context = ServiceGenerationContext.create(route_guide_service, "_pb2")
        lines = gateway.generate_methods(context)

        headings = [line.split("(", 1)[0] for line in lines if line.startswith("async def ")]
        assert headings == [
            "async def get_feature",
            "async def list_features",
            "async def record_route",
            "async def route_chat",
            "async def reset",
        ]

    def test_streaming_stub_has_no_downstream_call(self, route_guide_service):
        context = ServiceGenerationContext.create(route_guide_service, "_pb2")
        stub = gateway.generate_streaming_stub(context.methods[1])

        assert stub[0] == (
            "async def list_features(self, request: _pb2.Rectangle, context: grpc.aio.ServicerContext) -> None:"
        )
        assert not any("self.channel" in line for line in stub)
        assert any("grpc.StatusCode.UNIMPLEMENTED" in line for line in stub)

    def test_service_without_methods(self):
        context = ServiceGenerationContext.create(Service(name="Idle", proto_name="Idle"), "_pb2")

        assert gateway.generate_methods(context) == []
        assert "class IdleGateway(idle_server.Idle):" in gateway.generate(context)


class TestGatewayRuntime:
    """Test generated gateways against a fake downstream channel."""

    def test_gateway_is_a_servicer(self, greeter):
        gw = greeter.greeter_gateway.GreeterGateway(FakeChannel())

        assert isinstance(gw, greeter.greeter_server.Greeter)

    def test_forwards_unary_call(self, greeter, fake_messages):
        messages = fake_messages["helloworld_pb2"]
        channel = FakeChannel()
        gw = greeter.greeter_gateway.GreeterGateway(channel)

        reply = asyncio.run(gw.say_hello(messages.HelloRequest("world"), FakeServicerContext()))

        assert reply == messages.HelloReply("world")
        assert channel.calls == [("/helloworld.Greeter/SayHello", messages.HelloRequest("world"), None, ())]

    def test_forwards_exactly_once_per_call(self, greeter, fake_messages):
        messages = fake_messages["helloworld_pb2"]
        channel = FakeChannel()
        gw = greeter.greeter_gateway.GreeterGateway(channel)

        async def call_three_times():
            for name in ("a", "b", "c"):
                await gw.say_hello(messages.HelloRequest(name), FakeServicerContext())

        asyncio.run(call_three_times())

        assert [request.value for _, request, _, _ in channel.calls] == ["a", "b", "c"]

    def test_downstream_error_is_mapped(self, greeter, fake_messages):
        messages = fake_messages["helloworld_pb2"]
        channel = FakeChannel(error=FakeRpcError("connection refused"))
        gw = greeter.greeter_gateway.GreeterGateway(channel)

        with pytest.raises(AbortError) as exc_info:
            asyncio.run(gw.say_hello(messages.HelloRequest("world"), FakeServicerContext()))

        assert exc_info.value.code == grpc.StatusCode.UNKNOWN
        assert exc_info.value.details == "connection refused"
        assert len(channel.calls) == 1

    def test_other_errors_propagate(self, greeter, fake_messages):
        channel = FakeChannel(error=ValueError("bug"))
        gw = greeter.greeter_gateway.GreeterGateway(channel)

        with pytest.raises(ValueError, match="bug"):
            asyncio.run(gw.say_hello(fake_messages["helloworld_pb2"].HelloRequest(), FakeServicerContext()))

    def test_logs_peer(self, greeter, fake_messages, caplog):
        gw = greeter.greeter_gateway.GreeterGateway(FakeChannel())

        with caplog.at_level(logging.INFO):
            asyncio.run(gw.say_hello(fake_messages["helloworld_pb2"].HelloRequest(), FakeServicerContext()))

        assert f"Got a request from {PEER}" in caplog.messages

    @pytest.mark.parametrize(
        "method, proto_name",
        [
            ("list_features", "ListFeatures"),
            ("record_route", "RecordRoute"),
            ("route_chat", "RouteChat"),
        ],
    )
    def test_streaming_methods_are_rejected(self, route_guide, method, proto_name):
        channel = FakeChannel()
        gw = route_guide.route_guide_gateway.RouteGuideGateway(channel)

        with pytest.raises(AbortError) as exc_info:
            asyncio.run(getattr(gw, method)(object(), FakeServicerContext()))

        assert exc_info.value.code == grpc.StatusCode.UNIMPLEMENTED
        assert proto_name in exc_info.value.details
        assert channel.created == []
        assert channel.calls == []

    def test_unary_methods_of_mixed_service_are_forwarded(self, route_guide, fake_messages):
        messages = fake_messages["route_guide_pb2"]
        channel = FakeChannel()
        gw = route_guide.route_guide_gateway.RouteGuideGateway(channel)

        reply = asyncio.run(gw.get_feature(messages.Point("p"), FakeServicerContext()))

        assert reply == messages.Feature("p")
        assert channel.created == [("unary_unary", "/routeguide.RouteGuide/GetFeature")]

    def test_forwards_caller_metadata(self, greeter, fake_messages):
        channel = FakeChannel()
        gw = greeter.greeter_gateway.GreeterGateway(channel)
        context = FakeServicerContext(
            metadata=(
                (":authority", "gateway:50051"),
                ("user-agent", "grpc-python/1.0"),
                ("grpc-accept-encoding", "identity"),
                ("x-trace-id", "abc"),
                ("authorization-bin", b"\x00\x01"),
            )
        )

        asyncio.run(gw.say_hello(fake_messages["helloworld_pb2"].HelloRequest(), context))

        assert channel.calls[0][3] == (("x-trace-id", "abc"), ("authorization-bin", b"\x00\x01"))


class TestReservedMethodNames:
    """A method named like a member of the generated classes keeps both working."""

    @pytest.fixture
    def channel_service(self, fake_messages):
        unit = CompilationUnit(
            name="helloworld.proto",
            messages_module="helloworld_pb2",
            package="helloworld",
            services=(
                Service(name="Greeter", proto_name="Greeter", package="helloworld", methods=(new_method("Channel"),)),
            ),
        )
        return load_generated(Writer(unit).dumps())

    def test_gateway_keeps_its_channel(self, channel_service, fake_messages):
        messages = fake_messages["helloworld_pb2"]
        channel = FakeChannel()
        gw = channel_service.greeter_gateway.GreeterGateway(channel)

        reply = asyncio.run(gw.channel_(messages.HelloRequest("x"), FakeServicerContext()))

        assert gw.channel is channel
        assert reply == messages.HelloReply("x")
        assert channel.created == [("unary_unary", "/helloworld.Greeter/Channel")]

    def test_client_keeps_its_channel(self, channel_service, fake_messages):
        channel = FakeChannel()
        client = channel_service.greeter_client.GreeterClient(channel)

        reply = asyncio.run(client.channel_(fake_messages["helloworld_pb2"].HelloRequest("x")))

        assert reply == fake_messages["helloworld_pb2"].HelloReply("x")
