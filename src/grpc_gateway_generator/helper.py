"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

import keyword
import re
from collections.abc import Sequence

from grpc_gateway_generator.ir import MalformedIRError

INDENT = "    "

_ACRONYM_BOUNDARY = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])|(?<=[a-z0-9])(?=[A-Z])")


def naive_snake_case(name: str) -> str:
    """Convert an upper camel case name into a lowercase, underscore-delimited name.

    Every uppercase character after the first one is preceded by an underscore, so
    acronyms are split letter by letter. E.g. 'ABCServiceX' becomes 'a_b_c_service_x'.

    Args:
        name (str): The original name.

    Returns:
        str: The converted name.
    """
    out: list[str] = []

    for index, char in enumerate(name):
        out.append(char.lower())

        if index + 1 < len(name) and name[index + 1].isupper():
            out.append("_")

    return "".join(out)


def to_snake_case(name: str) -> str:
    """Convert a method name to a Python method identifier, keeping acronyms together.

    E.g. 'SayHello' becomes 'say_hello' and 'GetHTTPStatus' becomes 'get_http_status'.

    Args:
        name (str): The original name.

    Returns:
        str: The snake case name.
    """
    return _ACRONYM_BOUNDARY.sub("_", name).lower()


def sanitize_name(name: str) -> str:
    """Sanitize a name to avoid Python keywords.

    If the name is a Python keyword, append an underscore.
    E.g. 'import' becomes 'import_', 'class' becomes 'class_'.

    Args:
        name (str): The original name.

    Returns:
        str: The sanitized name.
    """
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


def check_identifier(name: str, what: str) -> str:
    """Make sure that a name can be used as a Python identifier.

    Args:
        name (str): The name to check.
        what (str): What the name refers to, for the error message.

    Raises:
        MalformedIRError: If the name is empty, no identifier, or a keyword.

    Returns:
        str: The unchanged name.
    """
    if not name:
        raise MalformedIRError(f"Empty {what} name.")

    if not name.isidentifier() or keyword.iskeyword(name):
        raise MalformedIRError(f"Invalid {what} name '{name}'.")

    return name


def parse_path(expression: str) -> str:
    """Validate a dotted reference (e.g. `_pb2.Outer.Inner`) for use in generated code.

    Args:
        expression (str): The reference.

    Raises:
        MalformedIRError: If any part of the reference is not a valid identifier.

    Returns:
        str: The reference.
    """
    for part in expression.split("."):
        if not part.isidentifier() or keyword.iskeyword(part):
            raise MalformedIRError(f"Cannot parse '{expression}' as a type path.")

    return expression


def join_parameters(parameters: Sequence[str] | None) -> str:
    """Joins parameters by means of ', '.

    Args:
        parameters (Sequence[str] | None): The parameters to join.

    Returns:
        str: The joined parameters.
    """
    if parameters:
        return ", ".join(p for p in parameters if p)

    else:
        return ""


def new_function(
    name: str,
    parameters: Sequence[str] | None = None,
    return_type: str | None = None,
    is_async: bool = False,
) -> str:
    """Create the heading of a function definition.

    Args:
        name (str): The function name.
        parameters (Sequence[str] | None, optional): The function parameters, if any. Defaults to None.
        return_type (str | None, optional): The function's return type. Defaults to None.
        is_async (bool, optional): Whether to declare a coroutine function. Defaults to False.

    Returns:
        str: The function heading.
    """
    if return_type is None:
        return_type = "None"

    prefix = "async def" if is_async else "def"
    return f"{prefix} {name}({join_parameters(parameters)}) -> {return_type}:"


def new_class_declaration(name: str, parameters: Sequence[str] | None = None) -> str:
    """Creates a string for declaring a class.

    For example, for a name of 'GreeterGateway' and a parameter 'greeter_server.Greeter', the output
    will be 'class GreeterGateway(greeter_server.Greeter):'.

    If no parameters are provided, the output is just 'class GreeterGateway:'.

    Args:
        name (str): The class name.
        parameters (Sequence[str] | None, optional):
            A list of parameters that are part of the class declaration. Defaults to None.

    Returns:
        str: The class declaration.
    """
    if parameters:
        return f"class {name}({join_parameters(parameters)}):"
    else:
        return f"class {name}:"


def generate_doc_comments(comments: Sequence[str], fallback: str = "") -> list[str]:
    """Turn comment lines into the lines of a docstring.

    Args:
        comments (Sequence[str]): The comment lines. Empty lines are kept as paragraph breaks.
        fallback (str): The docstring to use, if there are no comments.

    Returns:
        list[str]: The docstring lines, without indentation. Empty if there is nothing to document.
    """
    lines = [line.rstrip().replace("\\", "\\\\").replace('"', '\\"') for line in comments]

    while lines and not lines[-1].strip():
        lines.pop()
    while lines and not lines[0].strip():
        lines.pop(0)

    if not lines:
        lines = [fallback] if fallback else []

    if not lines:
        return []

    if len(lines) == 1:
        return [f'"""{lines[0].strip()}"""']

    return [f'"""{lines[0].strip()}', *lines[1:], '"""']


def indent(lines: Sequence[str], level: int = 1) -> list[str]:
    """Indent non-empty lines by the given number of levels."""
    prefix = INDENT * level
    return [f"{prefix}{line}" if line else "" for line in lines]
