"""Generate the gateway namespace of a service.

A gateway implements the servicer interface of a service by forwarding each call to a
client of the same service, bound to a shared downstream channel.
"""

from __future__ import annotations

import logging

from grpc_gateway_generator import helper
from grpc_gateway_generator.server import servicer_signature
from grpc_gateway_generator.writer_dto import MethodInfo, ServiceGenerationContext

logger = logging.getLogger(__name__)

FORWARDED_METADATA_FUNCTION = "_forwarded_metadata"

# Headers that belong to a single hop and are never sent downstream.
HOP_HEADERS = ("user-agent", "content-type", "te")


class Strategy:
    """How a gateway method is synthesized."""

    UNARY = "unary"
    STREAMING_STUB = "streaming_stub"


def select_strategy(method: MethodInfo) -> str:
    """Pick the synthesis strategy for a method.

    Only unary methods are forwarded. Every streaming shape gets a stub.
    """
    match (method.client_streaming, method.server_streaming):
        case (False, False):
            return Strategy.UNARY
        case _:
            return Strategy.STREAMING_STUB


def generate(context: ServiceGenerationContext) -> str:
    """Generate the gateway namespace for a service.

    Args:
        context (ServiceGenerationContext): The derived names of the service.

    Returns:
        str: The code fragment.
    """
    lines = [
        helper.new_class_declaration(context.gateway_module),
        *helper.indent(['"""Generated gateway implementations."""', ""]),
        *helper.indent([helper.new_class_declaration(context.gateway_name, [context.servicer_path])]),
    ]

    body = [
        f'"""Implements `{context.servicer_name}` by forwarding each call to a `{context.client_name}` on a shared channel."""',
        "",
        helper.new_function("__init__", ["self", "channel: grpc.aio.Channel"]),
        f"{helper.INDENT}self.channel = channel",
    ]

    body.extend(generate_methods(context))

    lines.extend(helper.indent(body, 2))
    return "\n".join(lines) + "\n"


def generate_methods(context: ServiceGenerationContext) -> list[str]:
    """Synthesize the gateway methods of a service, in declaration order.

    Args:
        context (ServiceGenerationContext): The derived names of the service.

    Returns:
        list[str]: The lines of all methods, each preceded by an empty line.
    """
    lines: list[str] = []

    for method in context.methods:
        strategy = select_strategy(method)

        if strategy == Strategy.UNARY:
            method_lines = generate_unary(context.client_path, method)
        else:
            logger.debug("Streaming method '%s.%s' is not forwarded.", context.full_name, method.proto_name)
            method_lines = generate_streaming_stub(method)

        lines.append("")
        lines.extend(method_lines)

    return lines


def generate_unary(client_path: str, method: MethodInfo) -> list[str]:
    """Synthesize a method that forwards one unary call to the downstream client.

    Args:
        client_path (str): Qualified reference to the client class, e.g. 'greeter_client.GreeterClient'.
        method (MethodInfo): The method to forward.

    Returns:
        list[str]: The lines of the method.
    """
    body = helper.generate_doc_comments(method.comments)
    body.extend(
        [
            'logger.info("Got a request from %s", context.peer())',
            f"metadata = {FORWARDED_METADATA_FUNCTION}(context)",
            "try:",
            f"{helper.INDENT}return await {client_path}(self.channel).{method.name}(request, metadata=metadata)",
            "except grpc.RpcError as err:",
            f"{helper.INDENT}await context.abort(grpc.StatusCode.UNKNOWN, str(err))",
        ]
    )

    return [servicer_signature(method), *helper.indent(body)]


def generate_streaming_stub(method: MethodInfo) -> list[str]:
    """Synthesize the stub of a streaming method, which rejects every call.

    Args:
        method (MethodInfo): The streaming method.

    Returns:
        list[str]: The lines of the method.
    """
    body = helper.generate_doc_comments(method.comments)
    body.append(
        f'await context.abort(grpc.StatusCode.UNIMPLEMENTED, "The gateway does not forward streaming method {method.proto_name}")'
    )

    return [servicer_signature(method), *helper.indent(body)]


def generate_metadata_function() -> list[str]:
    """Generate the module-level function that selects the caller metadata to forward.

    Pseudo headers, `grpc-` headers and hop headers are left out, since the downstream
    channel sets its own.

    Returns:
        list[str]: The lines of the function.
    """
    hop_headers = ", ".join(f'"{header}"' for header in HOP_HEADERS)
    body = [
        '"""The metadata of an incoming call that is sent on with the downstream call."""',
        "return tuple(",
        f"{helper.INDENT}(key, value)",
        f"{helper.INDENT}for key, value in context.invocation_metadata() or ()",
        f'{helper.INDENT}if not key.startswith((":", "grpc-")) and key not in ({hop_headers})',
        ")",
    ]

    heading = helper.new_function(
        FORWARDED_METADATA_FUNCTION,
        ["context: grpc.aio.ServicerContext"],
        "tuple[tuple[str, str | bytes], ...]",
    )
    return [heading, *helper.indent(body)]
