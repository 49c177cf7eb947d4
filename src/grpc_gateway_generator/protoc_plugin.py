"""A protoc plugin that writes a module with clients, servers and gateways for each requested file.

Use it as `protoc --grpc-gateway_out=<dir> ...` with `protoc-gen-grpc-gateway` on the path.
"""

from __future__ import annotations

import logging
import sys

from google.protobuf.compiler import plugin_pb2

from grpc_gateway_generator.descriptor import build_compilation_unit
from grpc_gateway_generator.ir import MalformedIRError
from grpc_gateway_generator.run import output_file_name
from grpc_gateway_generator.writer import Writer

logger = logging.getLogger(__name__)


def generate_response(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Generate the files for a code generator request.

    A malformed service aborts the whole request: the response carries the error and no files.

    Args:
        request (CodeGeneratorRequest): The request sent by protoc.

    Returns:
        CodeGeneratorResponse: The response for protoc.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    files_by_name = {file_proto.name: file_proto for file_proto in request.proto_file}

    try:
        for file_name in request.file_to_generate:
            file_proto = files_by_name[file_name]
            dependencies = [files_by_name[name] for name in file_proto.dependency if name in files_by_name]

            content = Writer(build_compilation_unit(file_proto, dependencies)).dumps()
            if content:
                response.file.add(name=output_file_name(file_name), content=content)

    except MalformedIRError as e:
        logger.error("Code generation failed: %s", e)
        response.ClearField("file")
        response.error = str(e)

    return response


def main() -> int:
    """Read a request from stdin and write the response to stdout."""
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    request = plugin_pb2.CodeGeneratorRequest()
    request.ParseFromString(sys.stdin.buffer.read())

    response = generate_response(request)

    sys.stdout.buffer.write(response.SerializeToString())
    return 0
