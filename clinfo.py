"""OpenCL platform and device capability report.

Walks every platform the OpenCL runtime exposes, every device of each
platform, and prints their properties as a fixed-column report on stdout.
Diagnostics (failed queries, truncated values, context failures) go to
stderr; the report keeps going past them.

Usage:
    python clinfo.py [--image-formats]
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Protocol, TextIO

import pyopencl as cl


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class ClinfoConfig:
    image_formats: bool


VALID_ERROR_CODES = {
    "HELP_REQUESTED",
    "UNKNOWN_ARGUMENT",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dump OpenCL platform and device information",
        add_help=False,
        allow_abbrev=False,
        exit_on_error=False,
    )

    parser.add_argument("-h", "--help", action="store_true", default=False)
    parser.add_argument(
        "-i", "--image-formats", action="store_true", default=False
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse argv without exiting on unknown input.

    Unrecognized flags and positional arguments are collected into
    ``args.unrecognized`` so validate_config can turn them into a help
    request instead of an argparse error. Malformed known flags such as
    ``-ix`` or ``--image-formats=1`` raise UNKNOWN_ARGUMENT directly.
    """
    parser = build_argument_parser()
    try:
        args, unrecognized = parser.parse_known_args(argv)
    except argparse.ArgumentError as err:
        raise ConfigError(
            "UNKNOWN_ARGUMENT",
            f"Invalid argument: {err}",
            "Options take no values; see the options below.",
        ) from err
    args.unrecognized = unrecognized
    return args


def validate_config(args: argparse.Namespace) -> ClinfoConfig:
    unrecognized = getattr(args, "unrecognized", [])
    if unrecognized:
        raise ConfigError(
            "UNKNOWN_ARGUMENT",
            f"Unrecognized argument: {unrecognized[0]}",
            "clinfo takes no positional arguments; see the options below.",
        )
    if args.help:
        raise ConfigError("HELP_REQUESTED", "Help requested.")

    return ClinfoConfig(image_formats=bool(args.image_formats))


def build_config(argv: list[str] | None = None) -> ClinfoConfig:
    return validate_config(parse_args(argv))


def format_usage(prog: str) -> str:
    lines = [
        f"Usage: {prog} [options]",
        "Options:",
        "  -h, --help                This message",
        "  -i, --image-formats       Print image formats for each device",
        "",
    ]
    return "\n".join(lines)


# ===--- OpenCL constants ---=== #

CL_SUCCESS = 0
CL_DEVICE_NOT_FOUND = -1
CL_DEVICE_NOT_AVAILABLE = -2
CL_COMPILER_NOT_AVAILABLE = -3
CL_MEM_OBJECT_ALLOCATION_FAILURE = -4
CL_OUT_OF_RESOURCES = -5
CL_OUT_OF_HOST_MEMORY = -6
CL_PROFILING_INFO_NOT_AVAILABLE = -7
CL_MEM_COPY_OVERLAP = -8
CL_IMAGE_FORMAT_MISMATCH = -9
CL_IMAGE_FORMAT_NOT_SUPPORTED = -10
CL_BUILD_PROGRAM_FAILURE = -11
CL_MAP_FAILURE = -12
CL_INVALID_VALUE = -30
CL_INVALID_DEVICE_TYPE = -31
CL_INVALID_CONTEXT = -34

CL_DEVICE_TYPE_DEFAULT = 1 << 0
CL_DEVICE_TYPE_CPU = 1 << 1
CL_DEVICE_TYPE_GPU = 1 << 2
CL_DEVICE_TYPE_ACCELERATOR = 1 << 3
CL_DEVICE_TYPE_CUSTOM = 1 << 4
CL_DEVICE_TYPE_ALL = 0xFFFFFFFF

CL_EXEC_KERNEL = 1 << 0
CL_EXEC_NATIVE_KERNEL = 1 << 1

CL_MEM_READ_ONLY = 1 << 2
CL_MEM_OBJECT_IMAGE2D = 0x10F1

CL_PLATFORM_PROFILE = 0x0900
CL_PLATFORM_VERSION = 0x0901
CL_PLATFORM_NAME = 0x0902
CL_PLATFORM_VENDOR = 0x0903
CL_PLATFORM_EXTENSIONS = 0x0904

CL_DEVICE_TYPE = 0x1000
CL_DEVICE_VENDOR_ID = 0x1001
CL_DEVICE_MAX_COMPUTE_UNITS = 0x1002
CL_DEVICE_MAX_WORK_ITEM_DIMENSIONS = 0x1003
CL_DEVICE_MAX_WORK_GROUP_SIZE = 0x1004
CL_DEVICE_MAX_WORK_ITEM_SIZES = 0x1005
CL_DEVICE_PREFERRED_VECTOR_WIDTH_CHAR = 0x1006
CL_DEVICE_PREFERRED_VECTOR_WIDTH_SHORT = 0x1007
CL_DEVICE_PREFERRED_VECTOR_WIDTH_INT = 0x1008
CL_DEVICE_PREFERRED_VECTOR_WIDTH_LONG = 0x1009
CL_DEVICE_PREFERRED_VECTOR_WIDTH_FLOAT = 0x100A
CL_DEVICE_PREFERRED_VECTOR_WIDTH_DOUBLE = 0x100B
CL_DEVICE_MAX_CLOCK_FREQUENCY = 0x100C
CL_DEVICE_ADDRESS_BITS = 0x100D
CL_DEVICE_MAX_READ_IMAGE_ARGS = 0x100E
CL_DEVICE_MAX_WRITE_IMAGE_ARGS = 0x100F
CL_DEVICE_MAX_MEM_ALLOC_SIZE = 0x1010
CL_DEVICE_IMAGE2D_MAX_WIDTH = 0x1011
CL_DEVICE_IMAGE2D_MAX_HEIGHT = 0x1012
CL_DEVICE_IMAGE3D_MAX_WIDTH = 0x1013
CL_DEVICE_IMAGE3D_MAX_HEIGHT = 0x1014
CL_DEVICE_IMAGE3D_MAX_DEPTH = 0x1015
CL_DEVICE_IMAGE_SUPPORT = 0x1016
CL_DEVICE_MAX_PARAMETER_SIZE = 0x1017
CL_DEVICE_MAX_SAMPLERS = 0x1018
CL_DEVICE_MEM_BASE_ADDR_ALIGN = 0x1019
CL_DEVICE_MIN_DATA_TYPE_ALIGN_SIZE = 0x101A
CL_DEVICE_SINGLE_FP_CONFIG = 0x101B
CL_DEVICE_GLOBAL_MEM_CACHE_TYPE = 0x101C
CL_DEVICE_GLOBAL_MEM_CACHELINE_SIZE = 0x101D
CL_DEVICE_GLOBAL_MEM_CACHE_SIZE = 0x101E
CL_DEVICE_GLOBAL_MEM_SIZE = 0x101F
CL_DEVICE_MAX_CONSTANT_BUFFER_SIZE = 0x1020
CL_DEVICE_MAX_CONSTANT_ARGS = 0x1021
CL_DEVICE_LOCAL_MEM_TYPE = 0x1022
CL_DEVICE_LOCAL_MEM_SIZE = 0x1023
CL_DEVICE_ERROR_CORRECTION_SUPPORT = 0x1024
CL_DEVICE_PROFILING_TIMER_RESOLUTION = 0x1025
CL_DEVICE_ENDIAN_LITTLE = 0x1026
CL_DEVICE_AVAILABLE = 0x1027
CL_DEVICE_COMPILER_AVAILABLE = 0x1028
CL_DEVICE_EXECUTION_CAPABILITIES = 0x1029
CL_DEVICE_QUEUE_PROPERTIES = 0x102A
CL_DEVICE_NAME = 0x102B
CL_DEVICE_VENDOR = 0x102C
CL_DRIVER_VERSION = 0x102D
CL_DEVICE_PROFILE = 0x102E
CL_DEVICE_VERSION = 0x102F
CL_DEVICE_EXTENSIONS = 0x1030

UINT64_MASK = 0xFFFF_FFFF_FFFF_FFFF
SCALAR_SIZE = 8
STRING_CAPACITY = 65536


# ===--- Status translation ---=== #

STATUS_MESSAGES: dict[int, str] = {
    CL_SUCCESS: "no error",
    CL_DEVICE_NOT_FOUND: "device not found",
    CL_DEVICE_NOT_AVAILABLE: "device not available",
    CL_COMPILER_NOT_AVAILABLE: "compiler not available",
    CL_MEM_OBJECT_ALLOCATION_FAILURE: "mem object allocation failure",
    CL_OUT_OF_RESOURCES: "out of resources",
    CL_OUT_OF_HOST_MEMORY: "out of host memory",
    CL_PROFILING_INFO_NOT_AVAILABLE: "profiling not available",
    CL_MEM_COPY_OVERLAP: "memcopy overlaps",
    CL_IMAGE_FORMAT_MISMATCH: "image format mismatch",
    CL_IMAGE_FORMAT_NOT_SUPPORTED: "image format not supported",
    CL_BUILD_PROGRAM_FAILURE: "build program failed",
    CL_MAP_FAILURE: "map failed",
    CL_INVALID_VALUE: "invalid value",
    CL_INVALID_DEVICE_TYPE: "invalid device type",
}


def translate_status(code: int) -> str:
    """Return the human-readable phrase for an OpenCL status code.

    Never fails: codes missing from STATUS_MESSAGES render as
    "unknown error <code>".
    """
    message = STATUS_MESSAGES.get(code)
    if message is None:
        return f"unknown error {code}"
    return message


# ===--- Value formatters ---=== #


def format_long(value: int) -> str:
    """Render an unsigned 64-bit value with comma thousands grouping.

    The separator is fixed; the output does not depend on the process locale.

    Args:
        value: Integer value. Bits above 64 are discarded.

    Returns:
        Decimal string, e.g. "1,234,567".
    """
    return f"{value & UINT64_MASK:,d}"


def render_words(text: str, indent_width: int, sort: bool = False) -> list[str]:
    """Split a whitespace-separated list into one token per line.

    The first token carries no indentation so it can follow a row label.
    Every later token is preceded by indent_width spaces.

    Args:
        text: Whitespace-separated words, e.g. an extension string.
        indent_width: Column of the first token in the enclosing row.
        sort: Sort tokens lexicographically before rendering.

    Returns:
        Rendered lines, empty when text holds no tokens.
    """
    words = text.split()
    if sort:
        words.sort()
    if not words:
        return []
    pad = " " * indent_width
    return [words[0]] + [f"{pad}{word}" for word in words[1:]]


def render_flags(value: int, flags: Sequence[tuple[int, str]]) -> str:
    """Name every known bit set in value, in flag-table order.

    Bits not covered by flags are appended as "Unknown (0x...)".
    """
    remaining = value
    names: list[str] = []
    for bit, name in flags:
        if remaining & bit:
            remaining &= ~bit
            names.append(name)
    if remaining:
        names.append(f"Unknown (0x{remaining:x})")
    return " ".join(names)


def render_indexed(index: int, names: Sequence[str]) -> str:
    if 0 <= index < len(names):
        return f"{names[index]} ({index})"
    return f"??? ({index})"


# ===--- Property descriptors ---=== #


class PropertyKind(Enum):
    STRING = "string"
    WORDS = "words"
    LONG = "long"
    HEX = "hex"
    FLAGS = "flags"
    ARRAY = "array"
    INDEXED = "indexed"


@dataclass(frozen=True)
class PropertyDescriptor:
    """One queryable property and how to render it.

    Only the fields relevant to kind are consulted; the rest keep their
    defaults.

    Attributes:
        param: Runtime property id, e.g. CL_DEVICE_NAME.
        name: Display name used in report rows and diagnostics.
        kind: Value shape, selects the renderer.
        flags: (bit, name) pairs for FLAGS, tested in order.
        names: Name table for INDEXED, indexed by the raw value.
        length: Element count of the local buffer for ARRAY.
        sort_words: Sort the tokens of a WORDS property.
    """

    param: int
    name: str
    kind: PropertyKind
    flags: tuple[tuple[int, str], ...] = ()
    names: tuple[str, ...] = ()
    length: int = 0
    sort_words: bool = False

    @property
    def capacity(self) -> int:
        """Size in bytes of the local buffer the value is read into."""
        if self.kind in (PropertyKind.STRING, PropertyKind.WORDS):
            return STRING_CAPACITY
        if self.kind is PropertyKind.ARRAY:
            return SCALAR_SIZE * self.length
        return SCALAR_SIZE


@dataclass(frozen=True)
class PropertyTable:
    """Ordered descriptors for one entity kind plus its name column width."""

    name_width: int
    properties: tuple[PropertyDescriptor, ...]


DEVICE_TYPE_FLAGS: tuple[tuple[int, str], ...] = (
    (CL_DEVICE_TYPE_DEFAULT, "Default"),
    (CL_DEVICE_TYPE_CPU, "CPU"),
    (CL_DEVICE_TYPE_GPU, "GPU"),
    (CL_DEVICE_TYPE_ACCELERATOR, "Accelerator"),
    (CL_DEVICE_TYPE_CUSTOM, "Custom"),
)

EXECUTION_CAPABILITY_FLAGS: tuple[tuple[int, str], ...] = (
    (CL_EXEC_KERNEL, "Kernel"),
    (CL_EXEC_NATIVE_KERNEL, "Native"),
)

GLOBAL_MEM_CACHE_TYPES: tuple[str, ...] = ("None", "Read-Only", "Read-Write")
LOCAL_MEM_TYPES: tuple[str, ...] = ("???", "Local", "Global")

WORK_ITEM_SIZES_LENGTH = 3


def _props(
    kind: PropertyKind, *entries: tuple[int, str]
) -> tuple[PropertyDescriptor, ...]:
    return tuple(PropertyDescriptor(param, name, kind) for param, name in entries)


PLATFORM_PROPERTIES = PropertyTable(
    name_width=10,
    properties=(
        *_props(
            PropertyKind.STRING,
            (CL_PLATFORM_NAME, "name"),
            (CL_PLATFORM_VENDOR, "vendor"),
            (CL_PLATFORM_PROFILE, "profile"),
            (CL_PLATFORM_VERSION, "version"),
        ),
        PropertyDescriptor(CL_PLATFORM_EXTENSIONS, "extensions", PropertyKind.WORDS),
    ),
)

DEVICE_PROPERTIES = PropertyTable(
    name_width=30,
    properties=(
        PropertyDescriptor(
            CL_DEVICE_TYPE, "TYPE", PropertyKind.FLAGS, flags=DEVICE_TYPE_FLAGS
        ),
        *_props(
            PropertyKind.STRING,
            (CL_DEVICE_NAME, "NAME"),
            (CL_DEVICE_VENDOR, "VENDOR"),
            (CL_DEVICE_PROFILE, "PROFILE"),
            (CL_DEVICE_VERSION, "VERSION"),
            (CL_DRIVER_VERSION, "DRIVER_VERSION"),
        ),
        PropertyDescriptor(
            CL_DEVICE_EXTENSIONS, "EXTENSIONS", PropertyKind.WORDS, sort_words=True
        ),
        PropertyDescriptor(
            CL_DEVICE_EXECUTION_CAPABILITIES,
            "EXECUTION_CAPABILITIES",
            PropertyKind.FLAGS,
            flags=EXECUTION_CAPABILITY_FLAGS,
        ),
        PropertyDescriptor(
            CL_DEVICE_GLOBAL_MEM_CACHE_TYPE,
            "GLOBAL_MEM_CACHE_TYPE",
            PropertyKind.INDEXED,
            names=GLOBAL_MEM_CACHE_TYPES,
        ),
        PropertyDescriptor(
            CL_DEVICE_LOCAL_MEM_TYPE,
            "LOCAL_MEM_TYPE",
            PropertyKind.INDEXED,
            names=LOCAL_MEM_TYPES,
        ),
        *_props(
            PropertyKind.HEX,
            (CL_DEVICE_SINGLE_FP_CONFIG, "SINGLE_FP_CONFIG"),
            (CL_DEVICE_QUEUE_PROPERTIES, "QUEUE_PROPERTIES"),
        ),
        *_props(
            PropertyKind.LONG,
            (CL_DEVICE_VENDOR_ID, "VENDOR_ID"),
            (CL_DEVICE_MAX_COMPUTE_UNITS, "MAX_COMPUTE_UNITS"),
            (CL_DEVICE_MAX_WORK_ITEM_DIMENSIONS, "MAX_WORK_ITEM_DIMENSIONS"),
            (CL_DEVICE_MAX_WORK_GROUP_SIZE, "MAX_WORK_GROUP_SIZE"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_CHAR, "PREFERRED_VECTOR_WIDTH_CHAR"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_SHORT, "PREFERRED_VECTOR_WIDTH_SHORT"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_INT, "PREFERRED_VECTOR_WIDTH_INT"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_LONG, "PREFERRED_VECTOR_WIDTH_LONG"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_FLOAT, "PREFERRED_VECTOR_WIDTH_FLOAT"),
            (CL_DEVICE_PREFERRED_VECTOR_WIDTH_DOUBLE, "PREFERRED_VECTOR_WIDTH_DOUBLE"),
            (CL_DEVICE_MAX_CLOCK_FREQUENCY, "MAX_CLOCK_FREQUENCY"),
            (CL_DEVICE_ADDRESS_BITS, "ADDRESS_BITS"),
            (CL_DEVICE_MAX_MEM_ALLOC_SIZE, "MAX_MEM_ALLOC_SIZE"),
            (CL_DEVICE_IMAGE_SUPPORT, "IMAGE_SUPPORT"),
            (CL_DEVICE_MAX_READ_IMAGE_ARGS, "MAX_READ_IMAGE_ARGS"),
            (CL_DEVICE_MAX_WRITE_IMAGE_ARGS, "MAX_WRITE_IMAGE_ARGS"),
            (CL_DEVICE_IMAGE2D_MAX_WIDTH, "IMAGE2D_MAX_WIDTH"),
            (CL_DEVICE_IMAGE2D_MAX_HEIGHT, "IMAGE2D_MAX_HEIGHT"),
            (CL_DEVICE_IMAGE3D_MAX_WIDTH, "IMAGE3D_MAX_WIDTH"),
            (CL_DEVICE_IMAGE3D_MAX_HEIGHT, "IMAGE3D_MAX_HEIGHT"),
            (CL_DEVICE_IMAGE3D_MAX_DEPTH, "IMAGE3D_MAX_DEPTH"),
            (CL_DEVICE_MAX_SAMPLERS, "MAX_SAMPLERS"),
            (CL_DEVICE_MAX_PARAMETER_SIZE, "MAX_PARAMETER_SIZE"),
            (CL_DEVICE_MEM_BASE_ADDR_ALIGN, "MEM_BASE_ADDR_ALIGN"),
            (CL_DEVICE_MIN_DATA_TYPE_ALIGN_SIZE, "MIN_DATA_TYPE_ALIGN_SIZE"),
            (CL_DEVICE_GLOBAL_MEM_CACHELINE_SIZE, "GLOBAL_MEM_CACHELINE_SIZE"),
            (CL_DEVICE_GLOBAL_MEM_CACHE_SIZE, "GLOBAL_MEM_CACHE_SIZE"),
            (CL_DEVICE_GLOBAL_MEM_SIZE, "GLOBAL_MEM_SIZE"),
            (CL_DEVICE_MAX_CONSTANT_BUFFER_SIZE, "MAX_CONSTANT_BUFFER_SIZE"),
            (CL_DEVICE_MAX_CONSTANT_ARGS, "MAX_CONSTANT_ARGS"),
            (CL_DEVICE_LOCAL_MEM_SIZE, "LOCAL_MEM_SIZE"),
            (CL_DEVICE_ERROR_CORRECTION_SUPPORT, "ERROR_CORRECTION_SUPPORT"),
            (CL_DEVICE_PROFILING_TIMER_RESOLUTION, "PROFILING_TIMER_RESOLUTION"),
            (CL_DEVICE_ENDIAN_LITTLE, "ENDIAN_LITTLE"),
            (CL_DEVICE_AVAILABLE, "AVAILABLE"),
            (CL_DEVICE_COMPILER_AVAILABLE, "COMPILER_AVAILABLE"),
        ),
        PropertyDescriptor(
            CL_DEVICE_MAX_WORK_ITEM_SIZES,
            "MAX_WORK_ITEM_SIZES",
            PropertyKind.ARRAY,
            length=WORK_ITEM_SIZES_LENGTH,
        ),
    ),
)


# ===--- Runtime boundary ---=== #


class QueryResult(NamedTuple):
    """Outcome of one runtime call.

    Attributes:
        status: OpenCL status code, CL_SUCCESS on success.
        value: Returned value; meaningless unless status is CL_SUCCESS.
        size: Runtime-reported actual size in bytes for info queries, or the
            total number of available entries for enumeration queries.
    """

    status: int
    value: object = None
    size: int = 0


class ImageFormat(NamedTuple):
    channel_order: int
    channel_data_type: int


class Runtime(Protocol):
    """The OpenCL query surface the report is built from.

    Enumeration calls take num_entries: the value holds at most that many
    entries while size always reports how many exist, so num_entries=0 is a
    count query.
    """

    def get_platform_ids(self, num_entries: int) -> QueryResult: ...

    def get_device_ids(
        self, platform: object, device_type: int, num_entries: int
    ) -> QueryResult: ...

    def get_platform_info(self, platform: object, param: int) -> QueryResult: ...

    def get_device_info(self, device: object, param: int) -> QueryResult: ...

    def create_context(self, device: object) -> QueryResult: ...

    def get_supported_image_formats(
        self, context: object, flags: int, image_type: int, num_entries: int
    ) -> QueryResult: ...

    def release_context(self, context: object) -> int: ...


def _reported_size(value: object) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8")) + 1
    if isinstance(value, (list, tuple)):
        return SCALAR_SIZE * len(value)
    return SCALAR_SIZE


def _normalize_info(value: object) -> object:
    if isinstance(value, (list, tuple)):
        return tuple(int(item) for item in value)
    if isinstance(value, (bool, int)):
        return int(value)
    return value


class PyOpenCLRuntime:
    """Runtime implementation backed by pyopencl.

    pyopencl reports failures as pyopencl.Error; their code becomes the
    QueryResult status. Contexts stay referenced here until released, at
    which point pyopencl frees the underlying cl_context.
    """

    def __init__(self) -> None:
        self._contexts: dict[int, cl.Context] = {}

    def get_platform_ids(self, num_entries: int) -> QueryResult:
        try:
            platforms = cl.get_platforms()
        except cl.Error as err:
            return QueryResult(err.code)
        return QueryResult(CL_SUCCESS, platforms[:num_entries], len(platforms))

    def get_device_ids(
        self, platform: cl.Platform, device_type: int, num_entries: int
    ) -> QueryResult:
        try:
            devices = platform.get_devices(device_type=device_type)
        except cl.Error as err:
            return QueryResult(err.code)
        return QueryResult(CL_SUCCESS, devices[:num_entries], len(devices))

    def get_platform_info(self, platform: cl.Platform, param: int) -> QueryResult:
        return self._get_info(platform, param)

    def get_device_info(self, device: cl.Device, param: int) -> QueryResult:
        return self._get_info(device, param)

    def create_context(self, device: cl.Device) -> QueryResult:
        try:
            context = cl.Context(devices=[device])
        except cl.Error as err:
            return QueryResult(err.code)
        self._contexts[id(context)] = context
        return QueryResult(CL_SUCCESS, context)

    def get_supported_image_formats(
        self, context: cl.Context, flags: int, image_type: int, num_entries: int
    ) -> QueryResult:
        try:
            formats = cl.get_supported_image_formats(context, flags, image_type)
        except cl.Error as err:
            return QueryResult(err.code)
        records = [
            ImageFormat(fmt.channel_order, fmt.channel_data_type)
            for fmt in formats[:num_entries]
        ]
        return QueryResult(CL_SUCCESS, records, len(formats))

    def release_context(self, context: cl.Context) -> int:
        if self._contexts.pop(id(context), None) is None:
            return CL_INVALID_CONTEXT
        return CL_SUCCESS

    @staticmethod
    def _get_info(entity: cl.Platform | cl.Device, param: int) -> QueryResult:
        try:
            value = entity.get_info(param)
        except cl.Error as err:
            return QueryResult(err.code)
        return QueryResult(CL_SUCCESS, _normalize_info(value), _reported_size(value))


# ===--- Property table walker ---=== #

QueryFn = Callable[[object, int], QueryResult]
Renderer = Callable[[PropertyDescriptor, object, int], list[str]]


def platform_label(index: int) -> str:
    return f"platform[{index}]"


def device_label(index: int) -> str:
    return f"device[{index}]"


def value_column(label: str, name_width: int) -> int:
    """Column at which row values start for label and a name column width."""
    return len(label) + 2 + name_width + 2


def format_row(label: str, name: str, name_width: int, value: str) -> str:
    row = f"{label}: {name:<{name_width}}:"
    if value:
        return f"{row} {value}"
    return row


def truncate_value(descriptor: PropertyDescriptor, value: object) -> object:
    """Clamp a returned value to what fits in the descriptor's local buffer.

    Strings keep capacity - 1 bytes (room for the terminating NUL), arrays
    keep their first length elements, scalars keep their low 64 bits.
    """
    kind = descriptor.kind
    if kind in (PropertyKind.STRING, PropertyKind.WORDS):
        raw = str(value).encode("utf-8")[: descriptor.capacity - 1]
        return raw.decode("utf-8", errors="ignore")
    if kind is PropertyKind.ARRAY:
        return tuple(value)[: descriptor.length]
    return int(value) & UINT64_MASK


def _render_string(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [str(value)]


def _render_words(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return render_words(str(value), indent, sort=descriptor.sort_words) or [""]


def _render_long(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [format_long(value)]


def _render_hex(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [f"0x{value:x}"]


def _render_flags(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [render_flags(value, descriptor.flags)]


def _render_array(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [", ".join(str(item) for item in value)]


def _render_indexed(
    descriptor: PropertyDescriptor, value: object, indent: int
) -> list[str]:
    return [render_indexed(value, descriptor.names)]


RENDERERS: dict[PropertyKind, Renderer] = {
    PropertyKind.STRING: _render_string,
    PropertyKind.WORDS: _render_words,
    PropertyKind.LONG: _render_long,
    PropertyKind.HEX: _render_hex,
    PropertyKind.FLAGS: _render_flags,
    PropertyKind.ARRAY: _render_array,
    PropertyKind.INDEXED: _render_indexed,
}


def render_property(
    label: str, descriptor: PropertyDescriptor, value: object, name_width: int
) -> list[str]:
    """Render one successfully queried property as report lines.

    The first line is the labelled row; any further lines are continuation
    lines already indented to the row's value column.
    """
    indent = value_column(label, name_width)
    lines = RENDERERS[descriptor.kind](descriptor, value, indent)
    return [format_row(label, descriptor.name, name_width, lines[0]), *lines[1:]]


def walk_properties(
    query: QueryFn,
    label: str,
    entity: object,
    table: PropertyTable,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Query and print every property of one entity, in table order.

    A failed query prints one diagnostic and moves on to the next
    descriptor. A value larger than the local buffer prints a warning and is
    rendered truncated.

    Args:
        query: Info call for the entity kind, e.g. Runtime.get_device_info.
        label: Positional prefix, e.g. "device[0]".
        entity: Platform or device handle passed through to query.
        table: Descriptors to walk.
        out: Report stream, stdout by default.
        err: Diagnostic stream, stderr by default.

    Returns:
        Number of properties rendered.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err

    rendered = 0
    for descriptor in table.properties:
        result = query(entity, descriptor.param)
        if result.status != CL_SUCCESS:
            print(
                f"{label}: Unable to get {descriptor.name}: "
                f"{translate_status(result.status)}!",
                file=err,
            )
            continue
        if result.size > descriptor.capacity:
            print(
                f"{label}: Large {descriptor.name} ({result.size} bytes)!  "
                f"Truncating to {descriptor.capacity}!",
                file=err,
            )
        value = truncate_value(descriptor, result.value)
        for line in render_property(label, descriptor, value, table.name_width):
            print(line, file=out)
        rendered += 1
    return rendered


# ===--- Image formats ---=== #

IMAGE_FORMATS_NAME = "IMAGE FORMATS"
CHANNEL_ORDER_WIDTH = 16

CHANNEL_ORDERS: dict[int, str] = {
    0x10B0: "CL_R",
    0x10B1: "CL_A",
    0x10B2: "CL_RG",
    0x10B3: "CL_RA",
    0x10B4: "CL_RGB",
    0x10B5: "CL_RGBA",
    0x10B6: "CL_BGRA",
    0x10B7: "CL_ARGB",
    0x10B8: "CL_INTENSITY",
    0x10B9: "CL_LUMINANCE",
    0x10BA: "CL_Rx",
    0x10BB: "CL_RGx",
    0x10BC: "CL_RGBx",
    0x10BD: "CL_DEPTH",
    0x10BE: "CL_DEPTH_STENCIL",
}

CHANNEL_DATA_TYPES: dict[int, str] = {
    0x10D0: "CL_SNORM_INT8",
    0x10D1: "CL_SNORM_INT16",
    0x10D2: "CL_UNORM_INT8",
    0x10D3: "CL_UNORM_INT16",
    0x10D4: "CL_UNORM_SHORT_565",
    0x10D5: "CL_UNORM_SHORT_555",
    0x10D6: "CL_UNORM_INT_101010",
    0x10D7: "CL_SIGNED_INT8",
    0x10D8: "CL_SIGNED_INT16",
    0x10D9: "CL_SIGNED_INT32",
    0x10DA: "CL_UNSIGNED_INT8",
    0x10DB: "CL_UNSIGNED_INT16",
    0x10DC: "CL_UNSIGNED_INT32",
    0x10DD: "CL_HALF_FLOAT",
    0x10DE: "CL_FLOAT",
    0x10DF: "CL_UNORM_INT24",
}


def _enum_name(table: dict[int, str], value: int) -> str:
    name = table.get(value)
    if name is None:
        return f"UNKNOWN 0x{value:x}"
    return name


def format_image_format(fmt: ImageFormat) -> str:
    order = _enum_name(CHANNEL_ORDERS, fmt.channel_order)
    data_type = _enum_name(CHANNEL_DATA_TYPES, fmt.channel_data_type)
    return f"{order:<{CHANNEL_ORDER_WIDTH}}, {data_type}"


def format_image_formats(label: str, formats: Sequence[ImageFormat]) -> list[str]:
    """Render a device's supported image formats as report lines.

    Output format:

        device[0]: IMAGE FORMATS                 : CL_R            , CL_FLOAT
                                                   CL_RGBA         , CL_UNORM_INT8

    Args:
        label: Device prefix, e.g. "device[0]".
        formats: Formats in runtime order.

    Returns:
        One line per format, or a single "(none)" row when formats is empty.
    """
    name_width = DEVICE_PROPERTIES.name_width
    if not formats:
        return [format_row(label, IMAGE_FORMATS_NAME, name_width, "(none)")]
    pad = " " * value_column(label, name_width)
    entries = [format_image_format(fmt) for fmt in formats]
    first = format_row(label, IMAGE_FORMATS_NAME, name_width, entries[0])
    return [first] + [f"{pad}{entry}" for entry in entries[1:]]


def _report_step_failure(err: TextIO, label: str, step: str, status: int) -> None:
    print(f"{label}: Unable to {step}: {translate_status(status)}!", file=err)


def print_image_formats(
    runtime: Runtime,
    device_index: int,
    device: object,
    flags: int = CL_MEM_READ_ONLY,
    image_type: int = CL_MEM_OBJECT_IMAGE2D,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> bool:
    """Print the image formats a device supports for flags/image_type.

    Creates a context holding only device, queries the format count, then
    the formats. Any failing step prints one diagnostic and ends the
    enumeration. Once created, the context is released on every path; a
    failed release is reported but does not change the return value.

    Returns:
        True when the format list was printed.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err
    label = device_label(device_index)

    created = runtime.create_context(device)
    if created.status != CL_SUCCESS:
        _report_step_failure(err, label, "create context", created.status)
        return False
    context = created.value

    try:
        counted = runtime.get_supported_image_formats(context, flags, image_type, 0)
        if counted.status != CL_SUCCESS:
            _report_step_failure(
                err, label, "get number of supported image formats", counted.status
            )
            return False

        listed = runtime.get_supported_image_formats(
            context, flags, image_type, counted.size
        )
        if listed.status != CL_SUCCESS:
            _report_step_failure(
                err, label, "get supported image formats", listed.status
            )
            return False

        formats = list(listed.value)[: counted.size]
        for line in format_image_formats(label, formats):
            print(line, file=out)
        return True
    finally:
        status = runtime.release_context(context)
        if status != CL_SUCCESS:
            _report_step_failure(err, label, "release context", status)


# ===--- Report composer ---=== #

DEVICE_SEPARATOR = "-" * 80
PLATFORM_SEPARATOR = "=" * 80


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def print_device(
    runtime: Runtime,
    config: ClinfoConfig,
    index: int,
    device: object,
    out: TextIO,
    err: TextIO,
) -> None:
    print(f"Device #{index}", file=out)
    label = device_label(index)
    walk_properties(runtime.get_device_info, label, device, DEVICE_PROPERTIES, out, err)
    if config.image_formats:
        print_image_formats(runtime, index, device, out=out, err=err)


def print_platform(
    runtime: Runtime,
    config: ClinfoConfig,
    index: int,
    platform: object,
    out: TextIO,
    err: TextIO,
) -> bool:
    """Print one platform's properties followed by all of its devices.

    Device enumeration failures end this platform only.

    Returns:
        False when the platform's devices could not be enumerated.
    """
    label = platform_label(index)
    print(f"Platform #{index}", file=out)
    walk_properties(
        runtime.get_platform_info, label, platform, PLATFORM_PROPERTIES, out, err
    )

    counted = runtime.get_device_ids(platform, CL_DEVICE_TYPE_ALL, 0)
    if counted.status != CL_SUCCESS:
        print(
            f"{label}: Unable to query the number of devices: "
            f"{translate_status(counted.status)}",
            file=err,
        )
        return False
    print(f"{label}: Found {_plural(counted.size, 'device')}.", file=out)

    listed = runtime.get_device_ids(platform, CL_DEVICE_TYPE_ALL, counted.size)
    if listed.status != CL_SUCCESS:
        print(
            f"{label}: Unable to enumerate the devices: "
            f"{translate_status(listed.status)}",
            file=err,
        )
        return False

    devices = list(listed.value)[: counted.size]
    for device_index, device in enumerate(devices):
        print_device(runtime, config, device_index, device, out, err)
        if device_index + 1 < len(devices):
            print(DEVICE_SEPARATOR, file=out)
    return True


def run_report(
    runtime: Runtime,
    config: ClinfoConfig,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Print the full platform/device report.

    Only a failed platform query is fatal; every other failure is reported
    on err and the pass continues.

    Returns:
        Process exit status: 0 after a completed pass, 1 when the platforms
        could not be counted or enumerated.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err

    counted = runtime.get_platform_ids(0)
    if counted.status != CL_SUCCESS:
        print(
            "Unable to query the number of platforms: "
            f"{translate_status(counted.status)}",
            file=err,
        )
        return 1
    print(f"Found {_plural(counted.size, 'platform')}.", file=out)

    listed = runtime.get_platform_ids(counted.size)
    if listed.status != CL_SUCCESS:
        print(
            f"Unable to enumerate the platforms: {translate_status(listed.status)}",
            file=err,
        )
        return 1

    platforms = list(listed.value)[: counted.size]
    for index, platform in enumerate(platforms):
        print_platform(runtime, config, index, platform, out, err)
        if index + 1 < len(platforms):
            print(PLATFORM_SEPARATOR, file=out)
    return 0


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        if err.code != "HELP_REQUESTED":
            print(f"Config error [{err.code}]: {err.message}", file=sys.stderr)
            if err.suggestion:
                print(f"Hint: {err.suggestion}", file=sys.stderr)
        print(format_usage(build_argument_parser().prog), end="", file=sys.stderr)
        raise SystemExit(1) from err

    try:
        status = run_report(PyOpenCLRuntime(), config)
    except (OSError, RuntimeError) as err:
        print(f"Internal error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    raise SystemExit(status)


if __name__ == "__main__":
    main()
