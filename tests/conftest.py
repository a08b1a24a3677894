"""Pytest fixtures: synthetic kernel binaries and descriptor files."""

from __future__ import annotations

import os
import struct
import sys

import pytest
from lxml import etree

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'python'))


def build_metadata(kernels):
    """Encode `.neo_metadata` / `.neo_metadata.str` contents.

    `kernels` is a list of `(name, [(arg_name, flags), ...])`. Each kernel
    gets one trailing sentinel argument, counted in its arg_count.
    """
    strings = bytearray(b"\0")

    def intern(s):
        off = len(strings)
        strings.extend(s.encode() + b"\0")
        return off

    kernel_recs = []
    arg_recs = []
    for name, args in kernels:
        arg_index = len(arg_recs)
        for arg_name, flags in args:
            arg_recs.append((flags, intern(arg_name), 0, 4, 1, 0))
        arg_recs.append((0, 0, 0, 0, 0, 0))  # sentinel
        kernel_recs.append((intern(name), len(args) + 1, arg_index))

    kernel_first = 20
    arg_first = kernel_first + 12 * len(kernel_recs)
    out = bytearray(struct.pack("<5I", 1, len(kernel_recs), kernel_first, len(arg_recs), arg_first))
    for rec in kernel_recs:
        out += struct.pack("<3I", *rec)
    for rec in arg_recs:
        out += struct.pack("<6I", *rec)
    return bytes(out), bytes(strings)


def build_elf(sections):
    """Minimal little-endian ELF32 image holding `sections` (name -> bytes)."""
    shstrtab = bytearray(b"\0")
    name_offsets = {}
    for name in list(sections) + [".shstrtab"]:
        name_offsets[name] = len(shstrtab)
        shstrtab.extend(name.encode() + b"\0")

    body = bytearray(52)
    entries = [(0, 0, 0)]
    for name, data in sections.items():
        entries.append((name_offsets[name], len(body), len(data)))
        body += data
    entries.append((name_offsets[".shstrtab"], len(body), len(shstrtab)))
    body += shstrtab

    shoff = len(body)
    for name_off, offset, size in entries:
        body += struct.pack("<10I", name_off, 1, 0, 0, offset, size, 0, 0, 0, 0)

    body[0:4] = b"\x7fELF"
    body[4:7] = bytes([1, 1, 1])
    struct.pack_into("<II", body, 28, 52, shoff)
    struct.pack_into("<HH", body, 48, len(entries), len(entries) - 1)
    return bytes(body)


def build_kernel_elf(kernels):
    metadata, strings = build_metadata(kernels)
    return build_elf({
        ".text": b"\x00" * 16,
        ".neo_metadata": metadata,
        ".neo_metadata.str": strings,
    })


@pytest.fixture
def make_metadata():
    return build_metadata


@pytest.fixture
def make_elf():
    return build_elf


@pytest.fixture
def make_kernel_elf():
    return build_kernel_elf


@pytest.fixture
def xml():
    """Parse an XML snippet into an lxml element."""
    return lambda text: etree.fromstring(text.strip())


@pytest.fixture
def config_dir(tmp_path):
    """Directory for kernel files; `write(name, data)` stores one."""
    class _ConfigDir:
        path = tmp_path

        def write(self, name, data):
            (tmp_path / name).write_bytes(data)
            return str(tmp_path)

        def __str__(self):
            return str(tmp_path)

    return _ConfigDir()
