"""Command line option parsing with typed parameters and positional left-overs.

Options start with one or more dashes and are matched by name. Boolean
options take no value and toggle their default the first time they are
given. Other options consume the next argument. Parsing of options stops
at the first argument that does not start with a dash, or after ``--``.
What remains fills the registered left-over parameters in order.
"""

from __future__ import annotations

import enum
import math
import re
import struct
import sys
from dataclasses import dataclass
from typing import Any, TextIO

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_STRTOL = re.compile(r"\s*([+-]?\d+)")
_STRTOD = re.compile(
    r"\s*([+-]?(?:infinity|inf|nan|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))",
    re.IGNORECASE,
)
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_RULE = "-------------------------------------------"


class ArgumentType(enum.Enum):
    """Kind of value a parameter holds; the value is its label in help text."""

    DOUBLE = "<double>"
    FLOAT = "<float>"
    INT = "<int>"
    STRING = "<string>"
    BOOL = "<bool>"
    VECTOR_INT = "<vector_int>"
    VECTOR_DOUBLE = "<vector_double>"


@dataclass
class CommandArgument:
    """One registered parameter and its current value."""

    name: str
    description: str
    kind: ArgumentType
    value: Any
    parsed: bool = False
    optional: bool = False


class CommandArgsError(Exception):
    """Raised when the command line cannot be parsed."""

    def __init__(self, message: str, help_text: str | None = None) -> None:
        super().__init__(message)
        self.help_text = help_text


class HelpRequested(Exception):
    """Raised when ``-help`` or ``-h`` is given; carries the help text."""

    def __init__(self, help_text: str) -> None:
        super().__init__(help_text)
        self.help_text = help_text


def _first_token(text: str) -> str:
    tokens = text.split()
    if not tokens:
        raise ValueError("no value to parse")
    return tokens[0]


def _scan_list(text: str, pattern: re.Pattern, convert) -> list:
    token = _first_token(text)
    values = []
    pos = 0
    while pos < len(token):
        match = pattern.match(token, pos)
        if match is None:
            break
        values.append(convert(match.group(1)))
        # Skip the number and exactly one separator character after it.
        pos = match.end() + 1
    return values


def parse_int_list(text: str) -> list[int]:
    """Parse the first whitespace-separated token as integers split by any single character.

    Raises ValueError if the text holds no token at all.
    """
    return _scan_list(text, _STRTOL, int)


def parse_float_list(text: str) -> list[float]:
    """Parse the first whitespace-separated token as floats split by any single character.

    Raises ValueError if the text holds no token at all.
    """
    return _scan_list(text, _STRTOD, float)


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "-nan" if math.copysign(1.0, value) < 0 else "nan"
    return f"{value:g}"


def format_int_list(values) -> str:
    """Join integers with commas."""
    return ",".join(str(int(v)) for v in values)


def format_float_list(values) -> str:
    """Join floats with semicolons, six significant digits each."""
    return ";".join(_format_number(float(v)) for v in values)


def _to_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def _convert_int(text: str) -> int:
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"not an integer: {text!r}")
    value = int(match.group(1))
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _convert_float(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"not a number: {text!r}")
    value = float(match.group(1))
    if math.isinf(value):
        raise ValueError(f"number out of range: {text!r}")
    return value


def _convert_single(text: str) -> float:
    value = _convert_float(text)
    try:
        return _to_float32(value)
    except OverflowError as exc:
        raise ValueError(f"number out of range: {text!r}") from exc


def _convert_bool(text: str) -> bool:
    number = _convert_int(text)
    if number not in (0, 1):
        raise ValueError(f"not a boolean: {text!r}")
    return bool(number)


_CONVERTERS = {
    ArgumentType.INT: _convert_int,
    ArgumentType.DOUBLE: _convert_float,
    ArgumentType.FLOAT: _convert_single,
    ArgumentType.BOOL: _convert_bool,
    ArgumentType.STRING: str,
    ArgumentType.VECTOR_INT: parse_int_list,
    ArgumentType.VECTOR_DOUBLE: parse_float_list,
}


def _infer_kind(default: Any) -> ArgumentType:
    if isinstance(default, bool):
        return ArgumentType.BOOL
    if isinstance(default, int):
        return ArgumentType.INT
    if isinstance(default, float):
        return ArgumentType.DOUBLE
    if isinstance(default, str):
        return ArgumentType.STRING
    if isinstance(default, (list, tuple)):
        if not default:
            raise TypeError("the kind of an empty list default must be given")
        if all(isinstance(v, int) and not isinstance(v, bool) for v in default):
            return ArgumentType.VECTOR_INT
        return ArgumentType.VECTOR_DOUBLE
    raise TypeError(f"unsupported default value type: {type(default).__name__}")


def _coerce(default: Any, kind: ArgumentType) -> Any:
    if kind is ArgumentType.BOOL:
        return bool(default)
    if kind is ArgumentType.INT:
        return int(default)
    if kind is ArgumentType.DOUBLE:
        return float(default)
    if kind is ArgumentType.FLOAT:
        return _to_float32(float(default))
    if kind is ArgumentType.STRING:
        return str(default)
    if kind is ArgumentType.VECTOR_INT:
        return [int(v) for v in default]
    return [float(v) for v in default]


def _value_text(arg: CommandArgument) -> str:
    kind, value = arg.kind, arg.value
    if kind is ArgumentType.STRING:
        return value
    if kind is ArgumentType.BOOL:
        return "1" if value else "0"
    if kind is ArgumentType.INT:
        return str(value)
    if kind in (ArgumentType.DOUBLE, ArgumentType.FLOAT):
        return _format_number(value)
    if kind is ArgumentType.VECTOR_INT:
        return format_int_list(value)
    return format_float_list(value)


class CommandArgs:
    """A set of named parameters filled in from a command line."""

    def __init__(self, banner: str = "") -> None:
        self.banner = banner
        self.program_name = ""
        self._args: list[CommandArgument] = []
        self._left_overs: list[CommandArgument] = []
        self._left_overs_optional: list[CommandArgument] = []

    def param(self, name: str, default: Any, description: str = "", kind: ArgumentType | None = None) -> None:
        """Register an option; its kind follows the default unless given."""
        if kind is None:
            kind = _infer_kind(default)
        self._args.append(CommandArgument(name, description, kind, _coerce(default, kind)))

    def param_left_over(self, name: str, default: str = "", description: str = "", optional: bool = False) -> None:
        """Register a positional string parameter."""
        arg = CommandArgument(name, description, ArgumentType.STRING, str(default), optional=optional)
        (self._left_overs_optional if optional else self._left_overs).append(arg)

    def _find(self, name: str) -> CommandArgument | None:
        return next((arg for arg in self._args if arg.name == name), None)

    def parse_args(self, argv=None) -> None:
        """Parse ``argv`` (program name first; ``sys.argv`` when omitted)."""
        args = list(sys.argv if argv is None else argv)
        self.program_name = args[0] if args else ""
        i = 1
        while i < len(args):
            name = args[i]
            if not name.startswith("-"):
                break
            if name == "--":
                i += 1
                break
            stripped = name.lstrip("-")
            if stripped:
                name = stripped
            if name in ("help", "h"):
                raise HelpRequested(self.help_text())
            arg = self._find(name)
            if arg is None:
                raise CommandArgsError(f"Unknown Option '{name}' (use -help to get list of options).")
            if arg.kind is ArgumentType.BOOL:
                if not arg.parsed:
                    arg.value = not arg.value
            else:
                if i >= len(args) - 1:
                    raise CommandArgsError(f"Argument {name} needs value.", self.help_text())
                i += 1
                try:
                    arg.value = _CONVERTERS[arg.kind](args[i])
                except ValueError:
                    pass
            arg.parsed = True
            i += 1

        remaining = args[i:]
        if len(self._left_overs) > len(remaining):
            raise CommandArgsError("program requires parameters", self.help_text())
        positional = iter(remaining)
        for arg, value in zip(self._left_overs, positional):
            arg.value = value
        for arg, value in zip(self._left_overs_optional, positional):
            arg.value = value

    def help_text(self) -> str:
        """Usage line and a sorted table of the registered options."""
        lines = []
        if self.banner:
            lines.append(self.banner)
        usage = f"Usage: {self.program_name}" + (" [options] " if self._args else " ")
        names = [arg.name for arg in self._left_overs]
        names += [f"[{arg.name}]" for arg in self._left_overs_optional]
        usage += " ".join(names)
        lines += [usage, "", "General options:", _RULE, "-help / -h           Displays this help.", ""]
        if self._args:
            lines += ["Program Options:", _RULE]
            table = []
            for arg in self._args:
                if arg.kind is ArgumentType.BOOL:
                    table.append((arg.name, arg.description))
                    continue
                label = f"{arg.name} {arg.kind.value}"
                default = _value_text(arg)
                description = f"{arg.description} (default: {default})" if default else arg.description
                table.append((label, description))
            width = max(len(label) for label, _ in table) + 3
            for label, description in sorted(table, key=lambda row: row[0]):
                lines.append(f"-{label.ljust(width)}{description}")
        return "\n".join(lines) + "\n"

    def print_help(self, stream: TextIO | None = None) -> None:
        """Write the help text to ``stream`` (standard output by default)."""
        (stream or sys.stdout).write(self.help_text())

    def parsed_param(self, name: str) -> bool:
        """True if the named option was given on the command line."""
        arg = self._find(name)
        return arg.parsed if arg is not None else False

    def __getitem__(self, name: str) -> Any:
        arg = self._find(name)
        if arg is None:
            arg = next(
                (a for a in self._left_overs + self._left_overs_optional if a.name == name),
                None,
            )
        if arg is None:
            raise KeyError(name)
        return arg.value