"""Generate the client namespace of a service."""

from __future__ import annotations

from grpc_gateway_generator import helper
from grpc_gateway_generator.writer_dto import MethodInfo, ServiceGenerationContext

CALL_OPTIONS = ["*", "timeout: float | None = None", "metadata: grpc.aio.Metadata | None = None"]

STREAMING_CALL_TYPES = {
    "unary_stream": "grpc.aio.UnaryStreamCall",
    "stream_unary": "grpc.aio.StreamUnaryCall",
    "stream_stream": "grpc.aio.StreamStreamCall",
}


def generate(context: ServiceGenerationContext) -> str:
    """Generate the client namespace for a service.

    Args:
        context (ServiceGenerationContext): The derived names of the service.

    Returns:
        str: The code fragment.
    """
    lines = [
        helper.new_class_declaration(context.client_module),
        *helper.indent(['"""Generated client implementations."""', ""]),
        *helper.indent([helper.new_class_declaration(context.client_name)]),
    ]

    body = helper.generate_doc_comments(
        context.service.comments, fallback=f"Client for the `{context.full_name}` service."
    )
    body.append("")
    body.append(helper.new_function("__init__", ["self", "channel: grpc.aio.Channel"]))
    body.append(f"{helper.INDENT}self.channel = channel")

    for method in context.methods:
        body.append("")
        body.extend(_generate_method(method))

    lines.extend(helper.indent(body, 2))
    return "\n".join(lines) + "\n"


def _generate_method(method: MethodInfo) -> list[str]:
    if method.client_streaming:
        request_parameter = "request_iterator"
        request_type = f"AsyncIterable[{method.request_type}]"
    else:
        request_parameter = "request"
        request_type = method.request_type

    if method.is_unary:
        heading = helper.new_function(
            method.name,
            ["self", f"request: {request_type}", *CALL_OPTIONS],
            method.response_type,
            is_async=True,
        )
    else:
        heading = helper.new_function(
            method.name,
            ["self", f"{request_parameter}: {request_type}", *CALL_OPTIONS],
            STREAMING_CALL_TYPES[method.shape],
        )

    body = helper.generate_doc_comments(method.comments)
    body.extend(
        [
            f"call = self.channel.{method.shape}(",
            f'{helper.INDENT}"{method.route}",',
            f"{helper.INDENT}request_serializer={method.request_type}.SerializeToString,",
            f"{helper.INDENT}response_deserializer={method.response_type}.FromString,",
            ")",
        ]
    )

    invocation = f"call({request_parameter}, timeout=timeout, metadata=metadata)"
    if method.is_unary:
        body.append(f"return await {invocation}")
    else:
        body.append(f"return {invocation}")

    return [heading, *helper.indent(body)]
