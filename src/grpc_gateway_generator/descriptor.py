"""Build the service description of a compilation unit from protobuf file descriptors."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from google.protobuf import descriptor_pb2

from grpc_gateway_generator import helper
from grpc_gateway_generator.ir import CompilationUnit, MalformedIRError, Method, Service
from grpc_gateway_generator.proto_types import PB2_SUFFIX, PROTO_SUFFIX, WELL_KNOWN_MODULES, WELL_KNOWN_PREFIX

logger = logging.getLogger(__name__)

# Field numbers used in `SourceCodeInfo.Location.path`.
SERVICE_FIELD_NUMBER = 6
METHOD_FIELD_NUMBER = 2

TypeRegistryType = dict[str, tuple[str, str]]
"""Maps fully-qualified wire type names to (declaring file, name relative to the file's package)."""


def module_name(proto_file: str) -> str:
    """The Python module protoc generates for a schema file.

    For example, `foo/bar-baz.proto` becomes `foo.bar_baz_pb2`.
    """
    base = proto_file[: -len(PROTO_SUFFIX)] if proto_file.endswith(PROTO_SUFFIX) else proto_file
    return base.replace("-", "_").replace("/", ".") + PB2_SUFFIX


def module_alias(proto_file: str) -> str:
    """The name under which a protoc-generated module refers to an imported module.

    For example, `common/other.proto` becomes `common_dot_other__pb2`.
    """
    return module_name(proto_file).replace("_", "__").replace(".", "_dot_")


def _register_messages(
    registry: TypeRegistryType,
    file_name: str,
    scope: str,
    relative_scope: str,
    messages: Iterable[descriptor_pb2.DescriptorProto],
) -> None:
    for message in messages:
        relative_name = f"{relative_scope}.{message.name}" if relative_scope else message.name
        registry[f"{scope}.{message.name}"] = (file_name, relative_name)
        _register_messages(registry, file_name, f"{scope}.{message.name}", relative_name, message.nested_type)


def build_type_registry(files: Iterable[descriptor_pb2.FileDescriptorProto]) -> TypeRegistryType:
    """Collect all message types declared by a set of files.

    Args:
        files (Iterable[FileDescriptorProto]): The file descriptors.

    Returns:
        TypeRegistryType: The registered types.
    """
    registry: TypeRegistryType = {}

    for file_proto in files:
        scope = f".{file_proto.package}" if file_proto.package else ""
        _register_messages(registry, file_proto.name, scope, "", file_proto.message_type)

    return registry


def local_type_name(wire_type_name: str, file_proto: descriptor_pb2.FileDescriptorProto, registry: TypeRegistryType) -> str:
    """The reference to a message type, relative to the message module of `file_proto`.

    Args:
        wire_type_name (str): The fully-qualified wire name (e.g. '.helloworld.HelloRequest').
        file_proto (FileDescriptorProto): The file that uses the type.
        registry (TypeRegistryType): All known message types.

    Raises:
        MalformedIRError: If the type is unknown.

    Returns:
        str: E.g. 'HelloRequest', 'Outer.Inner', 'common_dot_other__pb2.Other' or 'empty_pb2.Empty'.
    """
    try:
        declaring_file, relative_name = registry[wire_type_name]

    except KeyError as e:
        if wire_type_name.startswith(WELL_KNOWN_PREFIX):
            return _well_known_name(wire_type_name)
        raise MalformedIRError(f"Unknown message type '{wire_type_name}' in '{file_proto.name}'.") from e

    if wire_type_name.startswith(WELL_KNOWN_PREFIX):
        return _well_known_name(wire_type_name, declaring_file, relative_name)

    if declaring_file == file_proto.name:
        return relative_name

    return f"{module_alias(declaring_file)}.{relative_name}"


def _well_known_name(wire_type_name: str, declaring_file: str | None = None, relative_name: str | None = None) -> str:
    """Reference to a well-known type through its message module, e.g. `empty_pb2.Empty`.

    Without a descriptor, the name is taken relative to `google.protobuf`. A wire name that only
    shares the prefix (e.g. `.google.protobufx.Thing`) keeps its last component.
    """
    if relative_name is None:
        remainder = wire_type_name[len(WELL_KNOWN_PREFIX) :]
        if remainder.startswith("."):
            relative_name = remainder[1:]
        else:
            relative_name = wire_type_name.rsplit(".", 1)[-1]

    if declaring_file is not None:
        module = module_name(declaring_file).rsplit(".", 1)[-1]
    else:
        top_level = relative_name.split(".", 1)[0]
        module = WELL_KNOWN_MODULES.get(top_level, helper.to_snake_case(top_level) + PB2_SUFFIX)

    return f"{module}.{relative_name}"


def _comments(file_proto: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], tuple[str, ...]]:
    comments: dict[tuple[int, ...], tuple[str, ...]] = {}

    for location in file_proto.source_code_info.location:
        if location.leading_comments:
            lines = location.leading_comments.rstrip("\n").split("\n")
            comments[tuple(location.path)] = tuple(line[1:] if line.startswith(" ") else line for line in lines)

    return comments


def build_compilation_unit(
    file_proto: descriptor_pb2.FileDescriptorProto,
    dependencies: Sequence[descriptor_pb2.FileDescriptorProto] = (),
) -> CompilationUnit:
    """Build the description of all services of one schema file.

    Args:
        file_proto (FileDescriptorProto): The file to generate code for.
        dependencies (Sequence[FileDescriptorProto]): Descriptors of the files it imports.

    Raises:
        MalformedIRError: If a method refers to an unknown message type.

    Returns:
        CompilationUnit: The compilation unit.
    """
    registry = build_type_registry([*dependencies, file_proto])
    comments = _comments(file_proto)

    services = []
    for service_index, service_proto in enumerate(file_proto.service):
        methods = []
        for method_index, method_proto in enumerate(service_proto.method):
            methods.append(
                Method(
                    name=helper.sanitize_name(helper.to_snake_case(method_proto.name)),
                    proto_name=method_proto.name,
                    input_type_name=local_type_name(method_proto.input_type, file_proto, registry),
                    input_wire_type_name=method_proto.input_type,
                    output_type_name=local_type_name(method_proto.output_type, file_proto, registry),
                    output_wire_type_name=method_proto.output_type,
                    client_streaming=method_proto.client_streaming,
                    server_streaming=method_proto.server_streaming,
                    comments=comments.get(
                        (SERVICE_FIELD_NUMBER, service_index, METHOD_FIELD_NUMBER, method_index), ()
                    ),
                )
            )

        services.append(
            Service(
                name=service_proto.name,
                proto_name=service_proto.name,
                package=file_proto.package,
                methods=tuple(methods),
                comments=comments.get((SERVICE_FIELD_NUMBER, service_index), ()),
            )
        )

    logger.debug("Found %d service(s) in '%s'.", len(services), file_proto.name)

    return CompilationUnit(
        name=file_proto.name,
        messages_module=module_name(file_proto.name),
        package=file_proto.package,
        services=tuple(services),
    )
