"""
Bounds-checked ELF32 section lookup.

Only the fields needed to locate named sections are decoded:

    header (52 bytes)          section header (40 bytes)
      e_phoff    @28  u32        sh_name   @0   u32
      e_shoff    @32  u32        sh_offset @16  u32
      e_shnum    @48  u16        sh_size   @20  u32
      e_shstrndx @50  u16

Every offset and length read from the binary is validated against the
binary's length before it is dereferenced.
"""

from __future__ import annotations
from typing import Optional
from dataclasses import dataclass
import logging

import numpy as np

from vpu_custom.errors import MalformedBinary

logger = logging.getLogger(__name__)

__all__ = ["ElfSection", "find_section", "require_section", "section_bytes"]

_ELF32_HEADER = np.dtype({
    "names": ["e_phoff", "e_shoff", "e_shnum", "e_shstrndx"],
    "formats": ["<u4", "<u4", "<u2", "<u2"],
    "offsets": [28, 32, 48, 50],
    "itemsize": 52,
})

_ELF32_SHDR = np.dtype({
    "names": ["sh_name", "sh_offset", "sh_size"],
    "formats": ["<u4", "<u4", "<u4"],
    "offsets": [0, 16, 20],
    "itemsize": 40,
})


@dataclass(frozen=True)
class ElfSection:
    """A resolved section: name plus its byte range inside the binary."""
    name: str
    offset: int
    size: int


def _check_range(binary: bytes, offset: int, size: int, what: str) -> None:
    if offset + size > len(binary):
        raise MalformedBinary(
            f"{what} [{offset}, {offset + size}) exceeds binary size {len(binary)}"
        )


def _read_cstr(table: bytes, offset: int) -> Optional[bytes]:
    if offset >= len(table):
        return None
    end = table.find(b"\0", offset)
    if end == -1:
        return None
    return table[offset:end]


def _section_table(binary: bytes) -> tuple[np.ndarray, bytes]:
    if len(binary) < _ELF32_HEADER.itemsize:
        raise MalformedBinary(f"Kernel binary ({len(binary)} bytes) is too small for an ELF header")

    header = np.frombuffer(binary, dtype=_ELF32_HEADER, count=1)[0]
    shoff = int(header["e_shoff"])
    shnum = int(header["e_shnum"])
    shstrndx = int(header["e_shstrndx"])
    if shoff == 0 or int(header["e_phoff"]) == 0:
        raise MalformedBinary("ELF header has no section or program header table")

    _check_range(binary, shoff, shnum * _ELF32_SHDR.itemsize, "section header table")
    sections = np.frombuffer(binary, dtype=_ELF32_SHDR, count=shnum, offset=shoff)

    if shstrndx >= shnum:
        raise MalformedBinary(f"Section name string table index {shstrndx} out of {shnum} sections")
    str_offset = int(sections[shstrndx]["sh_offset"])
    str_size = int(sections[shstrndx]["sh_size"])
    _check_range(binary, str_offset, str_size, "section name string table")

    return sections, binary[str_offset:str_offset + str_size]


def find_section(binary: bytes, name: str) -> Optional[ElfSection]:
    """Return the first section called `name`, or None."""
    sections, names = _section_table(binary)
    target = name.encode()

    for shdr in sections:
        if _read_cstr(names, int(shdr["sh_name"])) != target:
            continue
        section = ElfSection(name, int(shdr["sh_offset"]), int(shdr["sh_size"]))
        _check_range(binary, section.offset, section.size, f"section {name}")
        logger.debug("found section %s at %d (%d bytes)", name, section.offset, section.size)
        return section

    return None


def require_section(binary: bytes, name: str) -> ElfSection:
    section = find_section(binary, name)
    if section is None:
        raise MalformedBinary(
            f"Error while parsing custom layer elf: Couldn't find {name} section",
            section=name,
        )
    return section


def section_bytes(binary: bytes, section: ElfSection) -> bytes:
    """Slice a section's contents out of the binary."""
    _check_range(binary, section.offset, section.size, f"section {section.name}")
    return binary[section.offset:section.offset + section.size]
