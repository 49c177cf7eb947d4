"""Generate the server namespace of a service."""

from __future__ import annotations

from grpc_gateway_generator import helper
from grpc_gateway_generator.writer_dto import MethodInfo, ServiceGenerationContext

UNIMPLEMENTED_MESSAGE = "Method not implemented!"


def servicer_signature(method: MethodInfo) -> str:
    """The heading of a servicer method, shared by the servicer base class and the gateway.

    Server streaming methods are coroutines that write their responses with `context.write`.
    """
    if method.client_streaming:
        request = f"request_iterator: AsyncIterable[{method.request_type}]"
    else:
        request = f"request: {method.request_type}"

    return_type = "None" if method.server_streaming else method.response_type

    return helper.new_function(
        method.name,
        ["self", request, "context: grpc.aio.ServicerContext"],
        return_type,
        is_async=True,
    )


def generate(context: ServiceGenerationContext) -> str:
    """Generate the server namespace for a service.

    The namespace holds the servicer base class, with one method per RPC, and a wrapper that
    registers a servicer on a `grpc.aio.Server`.

    Args:
        context (ServiceGenerationContext): The derived names of the service.

    Returns:
        str: The code fragment.
    """
    lines = [
        helper.new_class_declaration(context.server_module),
        *helper.indent(['"""Generated server implementations."""', ""]),
    ]

    lines.extend(helper.indent(_generate_servicer(context)))
    lines.append("")
    lines.extend(helper.indent(_generate_server(context)))

    return "\n".join(lines) + "\n"


def _generate_servicer(context: ServiceGenerationContext) -> list[str]:
    body = helper.generate_doc_comments(
        context.service.comments, fallback=f"Servicer interface of the `{context.full_name}` service."
    )

    for method in context.methods:
        body.append("")
        body.append(servicer_signature(method))
        method_body = helper.generate_doc_comments(method.comments)
        method_body.append(f'await context.abort(grpc.StatusCode.UNIMPLEMENTED, "{UNIMPLEMENTED_MESSAGE}")')
        body.extend(helper.indent(method_body))

    return [helper.new_class_declaration(context.servicer_name), *helper.indent(body)]


def _generate_server(context: ServiceGenerationContext) -> list[str]:
    body = [
        f'"""Registers a `{context.servicer_name}` implementation on a `grpc.aio.Server`."""',
        "",
        helper.new_function("__init__", ["self", f"inner: {context.servicer_path}"]),
        f"{helper.INDENT}self.inner = inner",
        "",
        helper.new_function("add_to", ["self", "server: grpc.aio.Server"]),
    ]

    handlers = ["rpc_method_handlers = {"]
    for method in context.methods:
        handlers.extend(
            helper.indent(
                [
                    f'"{method.proto_name}": grpc.{method.shape}_rpc_method_handler(',
                    f"{helper.INDENT}self.inner.{method.name},",
                    f"{helper.INDENT}request_deserializer={method.request_type}.FromString,",
                    f"{helper.INDENT}response_serializer={method.response_type}.SerializeToString,",
                    "),",
                ]
            )
        )
    handlers.append("}")
    handlers.append(
        f'generic_handler = grpc.method_handlers_generic_handler("{context.full_name}", rpc_method_handlers)'
    )
    handlers.append("server.add_generic_rpc_handlers((generic_handler,))")

    body.extend(helper.indent(handlers))
    return [helper.new_class_declaration(context.server_name), *helper.indent(body)]
