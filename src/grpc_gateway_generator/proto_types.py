"""Constants that are common to protobuf services and the generated code."""

from __future__ import annotations

WELL_KNOWN_PREFIX = ".google.protobuf"
"""Wire type names starting with this prefix belong to the protobuf well-known types."""

WELL_KNOWN_PACKAGE = "google.protobuf"

MESSAGES_ALIAS = "_pb2"
"""Name under which the generated code imports the message module of its compilation unit."""

PROTO_SUFFIX = ".proto"
PB2_SUFFIX = "_pb2"
GENERATED_SUFFIX = "_grpc.py"


class ArtifactKind:
    """Kinds of generated artifacts, in output order. Used as namespace suffixes."""

    CLIENT = "client"
    SERVER = "server"
    GATEWAY = "gateway"


# (client_streaming, server_streaming) -> grpc multi-callable / handler prefix
RPC_SHAPES = {
    (False, False): "unary_unary",
    (False, True): "unary_stream",
    (True, False): "stream_unary",
    (True, True): "stream_stream",
}

# Message modules of the well-known types, as shipped with `protobuf`.
WELL_KNOWN_MODULES = {
    "Any": "any_pb2",
    "Api": "api_pb2",
    "Method": "api_pb2",
    "Mixin": "api_pb2",
    "Duration": "duration_pb2",
    "Empty": "empty_pb2",
    "FieldMask": "field_mask_pb2",
    "SourceContext": "source_context_pb2",
    "Struct": "struct_pb2",
    "Value": "struct_pb2",
    "ListValue": "struct_pb2",
    "Timestamp": "timestamp_pb2",
    "Type": "type_pb2",
    "Field": "type_pb2",
    "Enum": "type_pb2",
    "EnumValue": "type_pb2",
    "Option": "type_pb2",
    "DoubleValue": "wrappers_pb2",
    "FloatValue": "wrappers_pb2",
    "Int64Value": "wrappers_pb2",
    "UInt64Value": "wrappers_pb2",
    "Int32Value": "wrappers_pb2",
    "UInt32Value": "wrappers_pb2",
    "BoolValue": "wrappers_pb2",
    "StringValue": "wrappers_pb2",
    "BytesValue": "wrappers_pb2",
}

# Members the generated clients, servicers and gateways define themselves. Method
# identifiers that collide with them get a trailing underscore.
RESERVED_MEMBER_NAMES = frozenset({"channel", "__init__"})
