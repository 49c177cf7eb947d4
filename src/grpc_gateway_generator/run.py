"""Top-level module for compiling *.proto schemas into clients, servers and gateways."""

from __future__ import annotations

import argparse
import glob
import logging
import os
import os.path
import tempfile
from collections.abc import Sequence
from importlib import resources
from pathlib import Path

from google.protobuf import descriptor_pb2
from grpc_tools import protoc

from grpc_gateway_generator.descriptor import build_compilation_unit
from grpc_gateway_generator.postprocess import DEFAULT_LINE_LENGTH, NoopPostProcessor, PostProcessor, RuffFormatter
from grpc_gateway_generator.proto_types import GENERATED_SUFFIX, PB2_SUFFIX, PROTO_SUFFIX
from grpc_gateway_generator.writer import Writer

logger = logging.getLogger(__name__)

OUT_DIR_VARIABLE = "OUT_DIR"


class ProtocError(Exception):
    """Raised when protoc fails to compile the schemas."""

    pass


def well_known_include_dir() -> str:
    """The directory with the well-known *.proto files bundled with grpcio-tools."""
    return str(resources.files("grpc_tools") / "_proto")


def output_file_name(proto_file: str) -> str:
    """The path of the generated module, relative to the output directory.

    For example, `helloworld.proto` becomes `helloworld_grpc.py`.
    """
    base = proto_file[: -len(PROTO_SUFFIX)] if proto_file.endswith(PROTO_SUFFIX) else proto_file
    return base.replace("-", "_") + GENERATED_SUFFIX


def messages_file_name(proto_file: str) -> str:
    """The path of the `*_pb2.py` module protoc writes for a schema, relative to the output directory."""
    base = proto_file[: -len(PROTO_SUFFIX)] if proto_file.endswith(PROTO_SUFFIX) else proto_file
    return base.replace("-", "_") + PB2_SUFFIX + ".py"


def _resolve_out_dir(out_dir: str | os.PathLike[str] | None) -> Path:
    if out_dir is not None:
        return Path(out_dir)

    try:
        return Path(os.environ[OUT_DIR_VARIABLE])

    except KeyError as e:
        raise ValueError(f"No output directory given and ${OUT_DIR_VARIABLE} is not set.") from e


def run_protoc(
    proto_files: Sequence[str],
    include_dirs: Sequence[str],
    out_dir: Path,
) -> descriptor_pb2.FileDescriptorSet:
    """Compile schemas with protoc into `*_pb2.py` modules and return their descriptors.

    Args:
        proto_files (Sequence[str]): The schema files to compile.
        include_dirs (Sequence[str]): The directories to resolve imports from.
        out_dir (Path): The directory for the `*_pb2.py` modules.

    Raises:
        ProtocError: If protoc exits with a non-zero status.

    Returns:
        FileDescriptorSet: The descriptors of the compiled files and all of their imports.
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        descriptor_set_path = os.path.join(temp_dir, "descriptor_set.pb")

        args = [
            "grpc_tools.protoc",
            *(f"--proto_path={include_dir}" for include_dir in include_dirs),
            f"--proto_path={well_known_include_dir()}",
            f"--python_out={out_dir}",
            f"--descriptor_set_out={descriptor_set_path}",
            "--include_imports",
            "--include_source_info",
            *proto_files,
        ]

        logger.info("Running protoc on %s", ", ".join(proto_files))
        code = protoc.main(args)

        if code != 0:
            raise ProtocError(f"protoc failed with exit code {code}")

        descriptor_set = descriptor_pb2.FileDescriptorSet()
        with open(descriptor_set_path, "rb") as f:
            descriptor_set.ParseFromString(f.read())

    return descriptor_set


def generate_modules(descriptor_set: descriptor_pb2.FileDescriptorSet, file_names: set[str], out_dir: Path) -> list[Path]:
    """Write the generated module for each of the requested files that declare services.

    Args:
        descriptor_set (FileDescriptorSet): Descriptors of the requested files and their imports.
        file_names (set[str]): Names of the requested files, relative to their include directory.
        out_dir (Path): The output directory.

    Raises:
        MalformedIRError: If a file cannot be turned into valid code.

    Returns:
        list[Path]: The written files.
    """
    written: list[Path] = []
    files_by_name = {file_proto.name: file_proto for file_proto in descriptor_set.file}

    for file_proto in descriptor_set.file:
        if file_proto.name not in file_names:
            continue

        dependencies = [files_by_name[name] for name in file_proto.dependency if name in files_by_name]
        unit = build_compilation_unit(file_proto, dependencies)

        content = Writer(unit).dumps()
        if not content:
            continue

        output_path = out_dir / output_file_name(file_proto.name)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf8") as output_file:
            output_file.write(content)

        logger.info("Wrote '%s'.", output_path)
        written.append(output_path)

    return written


def compile_protos(
    proto_path: str | os.PathLike[str],
    out_dir: str | os.PathLike[str] | None = None,
    include_dirs: Sequence[str | os.PathLike[str]] = (),
    post_processor: PostProcessor | None = None,
) -> list[Path]:
    """Compile a *.proto schema into message modules and a module with clients, servers and gateways.

    The include directory defaults to the folder the schema resides in.

    Args:
        proto_path (str | PathLike): The schema to compile.
        out_dir (str | PathLike | None): The output directory. Defaults to the `OUT_DIR` environment variable.
        include_dirs (Sequence[str | PathLike]): Additional directories to resolve imports from.
        post_processor (PostProcessor | None): The step to run over the written files. Defaults to ruff.

    Raises:
        ValueError: If no output directory is known.
        ProtocError: If protoc fails.
        MalformedIRError: If a service cannot be turned into valid code.
        FormatterError: If formatting fails.

    Returns:
        list[Path]: The generated modules with clients, servers and gateways.
    """
    proto_path = Path(proto_path).absolute()
    proto_dir = proto_path.parent
    output_dir = _resolve_out_dir(out_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if post_processor is None:
        post_processor = RuffFormatter()

    all_include_dirs = [str(proto_dir), *(str(Path(d).absolute()) for d in include_dirs)]
    descriptor_set = run_protoc([str(proto_path)], all_include_dirs, output_dir)

    # protoc names files relative to the include directory they were found in.
    file_name = proto_path.relative_to(proto_dir).as_posix()
    written = generate_modules(descriptor_set, {file_name}, output_dir)

    post_processor.format([output_dir / messages_file_name(file_name), *written])

    return written


def collect_proto_paths(
    paths: Sequence[str],
    excludes: Sequence[str],
    root_directory: str,
    recursive: bool = False,
) -> list[str]:
    """Find the *.proto files that match paths and glob expressions, except for excluded ones.

    Args:
        paths (Sequence[str]): Files, directories or glob expressions.
        excludes (Sequence[str]): Files or glob expressions to exclude.
        root_directory (str): The directory relative paths are resolved against.
        recursive (bool): Whether to search directories and `**` globs recursively.

    Returns:
        list[str]: The sorted paths of the matching files.
    """
    excluded_paths: set[str] = set()
    for exclude in excludes:
        exclude_path = os.path.join(root_directory, exclude)
        # Handle both specific files and glob patterns
        if os.path.isfile(exclude_path):
            excluded_paths.add(os.path.abspath(exclude_path))
        else:
            excluded_paths.update(os.path.abspath(p) for p in glob.glob(exclude_path, recursive=recursive))

    search_paths: set[str] = set()
    for path in paths:
        search_path = os.path.join(root_directory, path)

        # If recursive flag is set and path is a directory, find all .proto files recursively
        if recursive and os.path.isdir(search_path):
            for root, _, files in os.walk(search_path):
                for file in files:
                    if file.endswith(PROTO_SUFFIX):
                        search_paths.add(os.path.abspath(os.path.join(root, file)))
        # If path is a directory without recursive flag, find only direct children
        elif os.path.isdir(search_path):
            for file in os.listdir(search_path):
                file_path = os.path.join(search_path, file)
                if os.path.isfile(file_path) and file.endswith(PROTO_SUFFIX):
                    search_paths.add(os.path.abspath(file_path))
        # Otherwise use glob for patterns or specific files
        else:
            search_paths.update(os.path.abspath(p) for p in glob.glob(search_path, recursive=recursive))

    return sorted(search_paths - excluded_paths)


def _common_base(proto_paths: Sequence[str]) -> str:
    """The deepest folder that contains all schemas.

    Args:
        proto_paths: Absolute paths of the schemas

    Returns:
        The common base directory
    """
    if len(proto_paths) == 1:
        return os.path.dirname(proto_paths[0])

    return os.path.commonpath([os.path.dirname(p) for p in proto_paths])


def run(args: argparse.Namespace, root_directory: str) -> list[Path]:
    """Run the generator on a set of paths that point to *.proto schemas.

    Uses `compile_protos` on each input file.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the generator.
        root_directory (str): The directory, from which the generator is executed.

    Returns:
        list[Path]: All generated modules.
    """
    paths: list[str] = args.paths
    excludes: list[str] = getattr(args, "excludes", [])
    output_dir: str = getattr(args, "output_dir", "")
    import_paths: list[str] = getattr(args, "import_paths", [])
    no_format: bool = getattr(args, "no_format", False)
    line_length: int = getattr(args, "line_length", DEFAULT_LINE_LENGTH)
    recursive: bool = getattr(args, "recursive", False)

    proto_paths = collect_proto_paths(paths, excludes, root_directory, recursive)
    if not proto_paths:
        logger.warning("No *.proto files found for %s", ", ".join(paths))
        return []

    out_dir = os.path.join(root_directory, output_dir) if output_dir else os.environ.get(OUT_DIR_VARIABLE)
    absolute_import_paths = [os.path.join(root_directory, p) for p in import_paths]

    post_processor: PostProcessor
    if no_format:
        post_processor = NoopPostProcessor()
    else:
        post_processor = RuffFormatter(line_length=line_length)

    # Schemas keep their folders below the output directory, so equal file names do not clash.
    common_base = _common_base(proto_paths)

    written: list[Path] = []
    for proto_path in proto_paths:
        if out_dir:
            rel_dir = os.path.relpath(os.path.dirname(proto_path), common_base)
            target = os.path.normpath(os.path.join(out_dir, rel_dir))
        else:
            # Without an output directory, write next to each schema.
            target = os.path.dirname(proto_path)
        written.extend(compile_protos(proto_path, target, absolute_import_paths, post_processor))

    return written
