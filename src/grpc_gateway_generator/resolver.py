"""Resolve request and response types to references in generated code."""

from __future__ import annotations

from collections.abc import Iterable

from grpc_gateway_generator.helper import parse_path
from grpc_gateway_generator.ir import Method, Service
from grpc_gateway_generator.proto_types import WELL_KNOWN_PREFIX


def is_well_known(wire_type_name: str) -> bool:
    """Whether a wire type belongs to the protobuf well-known types.

    This is a plain prefix match on the fully-qualified wire name.
    """
    return wire_type_name.startswith(WELL_KNOWN_PREFIX)


def resolve_type(proto_path: str, wire_type_name: str, type_name: str) -> str:
    """Resolve a type to the reference used in generated code.

    Well-known types are used as-is, since the generated module imports their modules from
    `google.protobuf`. All other types are qualified by the message module of the compilation unit.

    Args:
        proto_path (str): The name under which the message module is available.
        wire_type_name (str): The fully-qualified wire type name, e.g. '.helloworld.HelloRequest'.
        type_name (str): The type name relative to the message module, e.g. 'HelloRequest'.

    Raises:
        MalformedIRError: If the reference is not a valid dotted path.

    Returns:
        str: The type reference.
    """
    if is_well_known(wire_type_name):
        return parse_path(type_name)

    return parse_path(f"{proto_path}.{type_name}")


def replace_wellknown(proto_path: str, method: Method) -> tuple[str, str]:
    """Resolve the request and response types of a method.

    Returns:
        tuple[str, str]: The request and the response reference.
    """
    request = resolve_type(proto_path, method.input_wire_type_name, method.input_type_name)
    response = resolve_type(proto_path, method.output_wire_type_name, method.output_type_name)
    return request, response


def well_known_modules(services: Iterable[Service]) -> list[str]:
    """Collect the `google.protobuf` modules that well-known type references depend on."""
    modules: set[str] = set()

    for service in services:
        for method in service.methods:
            for wire_type_name, type_name in (
                (method.input_wire_type_name, method.input_type_name),
                (method.output_wire_type_name, method.output_type_name),
            ):
                if is_well_known(wire_type_name) and "." in type_name:
                    modules.add(type_name.split(".", 1)[0])

    return sorted(modules)
