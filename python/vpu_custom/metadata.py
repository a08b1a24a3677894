"""
Kernel argument metadata embedded in compiled (MVCL) kernel binaries.

The metadata lives in two ELF sections: `.neo_metadata` holds fixed-size
little-endian records, `.neo_metadata.str` holds the null-terminated names
they reference.

    header   : version, kernel_count, kernel_first, arg_count, arg_first
    kernel   : name, arg_count, arg_index
    argument : flags, name, type, size_elm, addr_space, arg_class

`kernel_first` and `arg_first` are byte offsets into `.neo_metadata`;
`name` fields are byte offsets into `.neo_metadata.str`. A kernel's
`arg_count` includes one trailing sentinel record.

Consumers depend only on the `MetadataQuery` protocol; `NeoMetadataParser`
is the bundled implementation.
"""

from __future__ import annotations
from typing import Callable, Optional, Protocol
from dataclasses import dataclass
from enum import IntFlag
import logging

import numpy as np

from vpu_custom.errors import MalformedBinary, MetadataParseError

logger = logging.getLogger(__name__)

__all__ = [
    "ArgFlags",
    "MetadataKernel",
    "MetadataArgument",
    "MetadataQuery",
    "MetadataParserFactory",
    "NeoMetadataParser",
    "deduce_kernel_arguments",
    "METADATA_SECTION",
    "METADATA_STRINGS_SECTION",
]

METADATA_SECTION = ".neo_metadata"
METADATA_STRINGS_SECTION = ".neo_metadata.str"


class ArgFlags(IntFlag):
    """Argument flags."""
    NoFlags = 0
    GeneratedPrePost = 1    # buffer synthesized by the compiler (hoisted)


@dataclass(frozen=True)
class MetadataKernel:
    name: int
    arg_count: int
    arg_index: int


@dataclass(frozen=True)
class MetadataArgument:
    flags: ArgFlags
    name: int
    type: int
    size_elm: int
    addr_space: int
    arg_class: int


class MetadataQuery(Protocol):
    """Queries a compiled kernel's metadata."""

    def kernel_count(self) -> int: ...

    def find_kernel(self, name: str) -> Optional[int]: ...

    def get_kernel(self, kernel_id: int) -> Optional[MetadataKernel]: ...

    def get_argument(self, kernel: MetadataKernel, index: int) -> Optional[MetadataArgument]: ...

    def get_name(self, arg: MetadataArgument) -> str: ...


# (metadata bytes, string-table bytes) -> query object
MetadataParserFactory = Callable[[bytes, bytes], MetadataQuery]


_HEADER = np.dtype([
    ("version", "<u4"),
    ("kernel_count", "<u4"),
    ("kernel_first", "<u4"),
    ("arg_count", "<u4"),
    ("arg_first", "<u4"),
])

_KERNEL = np.dtype([
    ("name", "<u4"),
    ("arg_count", "<u4"),
    ("arg_index", "<u4"),
])

_ARGUMENT = np.dtype([
    ("flags", "<u4"),
    ("name", "<u4"),
    ("type", "<u4"),
    ("size_elm", "<u4"),
    ("addr_space", "<u4"),
    ("arg_class", "<u4"),
])


def _table(data: bytes, dtype: np.dtype, offset: int, count: int, what: str) -> np.ndarray:
    if offset + count * dtype.itemsize > len(data):
        raise MalformedBinary(
            f"{what} table ({count} entries at {offset}) exceeds {METADATA_SECTION} size {len(data)}",
            section=METADATA_SECTION,
        )
    return np.frombuffer(data, dtype=dtype, count=count, offset=offset)


class NeoMetadataParser:
    """Reader over the `.neo_metadata` / `.neo_metadata.str` sections."""

    def __init__(self, metadata: bytes, strings: bytes):
        if len(metadata) < _HEADER.itemsize:
            raise MalformedBinary(
                f"{METADATA_SECTION} is too small for its header ({len(metadata)} bytes)",
                section=METADATA_SECTION,
            )
        header = np.frombuffer(metadata, dtype=_HEADER, count=1)[0]
        self.version = int(header["version"])
        self._kernels = _table(metadata, _KERNEL, int(header["kernel_first"]),
                               int(header["kernel_count"]), "kernel")
        self._args = _table(metadata, _ARGUMENT, int(header["arg_first"]),
                            int(header["arg_count"]), "argument")
        self._strings = strings

    def _string(self, offset: int) -> Optional[str]:
        if offset >= len(self._strings):
            return None
        end = self._strings.find(b"\0", offset)
        if end == -1:
            return None
        return self._strings[offset:end].decode("utf-8", errors="replace")

    def kernel_count(self) -> int:
        return len(self._kernels)

    def get_kernel(self, kernel_id: int) -> Optional[MetadataKernel]:
        if not 0 <= kernel_id < len(self._kernels):
            return None
        rec = self._kernels[kernel_id]
        return MetadataKernel(int(rec["name"]), int(rec["arg_count"]), int(rec["arg_index"]))

    def find_kernel(self, name: str) -> Optional[int]:
        for kernel_id, rec in enumerate(self._kernels):
            if self._string(int(rec["name"])) == name:
                return kernel_id
        return None

    def get_argument(self, kernel: MetadataKernel, index: int) -> Optional[MetadataArgument]:
        if not 0 <= index < kernel.arg_count:
            return None
        pos = kernel.arg_index + index
        if pos >= len(self._args):
            return None
        rec = self._args[pos]
        if self._string(int(rec["name"])) is None:
            return None
        return MetadataArgument(
            flags=ArgFlags(int(rec["flags"])),
            name=int(rec["name"]),
            type=int(rec["type"]),
            size_elm=int(rec["size_elm"]),
            addr_space=int(rec["addr_space"]),
            arg_class=int(rec["arg_class"]),
        )

    def get_name(self, arg: MetadataArgument) -> str:
        name = self._string(arg.name)
        if name is None:
            raise MetadataParseError(f"Argument name offset {arg.name} is outside {METADATA_STRINGS_SECTION}")
        return name


def deduce_kernel_arguments(query: MetadataQuery, kernel_id: int) -> tuple[str, ...]:
    """Ordered names of the arguments a dispatcher must bind.

    Compiler-generated (hoisted) buffers are skipped; they have no
    descriptor-level counterpart.
    """
    kernel = query.get_kernel(kernel_id)
    if kernel is None:
        raise MetadataParseError(f"No kernel with id {kernel_id} in metadata")

    # arg_count always counts one trailing sentinel
    arg_count = kernel.arg_count - 1

    names = []
    for i in range(arg_count):
        arg = query.get_argument(kernel, i)
        if arg is None:
            raise MetadataParseError("Error while parsing custom layer elf file.")
        if arg.flags & ArgFlags.GeneratedPrePost:
            logger.debug("skipping hoisted argument %d of kernel %d", i, kernel_id)
            continue
        names.append(query.get_name(arg))

    return tuple(names)
