"""
Custom-layer kernel descriptors.

A descriptor is built once from one `<Kernel>` XML node plus the directory
its config file lives in, and is immutable afterwards. Two flavors exist:

- NativeKernel: a function compiled for the target and dispatched by
  splitting an axis across compute lanes. Argument order is the declaration
  order of the `<Parameters>` block.
- CompiledKernel: an MVCL kernel compiled ahead-of-time with embedded
  argument metadata. Argument order comes from the binary.

Example:
    kernel = CompiledKernel.from_xml(node, "/path/to/config")
    kernel.accept(my_visitor)
"""

from __future__ import annotations
from typing import Any, Generic, TypeVar
from dataclasses import dataclass
from abc import ABC, abstractmethod
import logging

from vpu_custom.descriptor import (
    get_int_attr, get_str_attr, load_kernel_binary, parse_dim_source,
    parse_parameters, parse_size_rule,
)
from vpu_custom.elf import require_section, section_bytes
from vpu_custom.errors import BinaryMismatch, InvalidDescriptor
from vpu_custom.metadata import (
    METADATA_SECTION, METADATA_STRINGS_SECTION,
    MetadataParserFactory, NeoMetadataParser, deduce_kernel_arguments,
)
from vpu_custom.types import DimSource, KernelParam

logger = logging.getLogger(__name__)

__all__ = ["KernelVisitor", "CustomKernel", "NativeKernel", "CompiledKernel"]

R = TypeVar("R")


# ============================================================
# Visitor
# ============================================================

class KernelVisitor(ABC, Generic[R]):
    """Handles each kernel flavor without inspecting its type."""

    @abstractmethod
    def visit_native(self, kernel: "NativeKernel") -> R:
        ...

    @abstractmethod
    def visit_compiled(self, kernel: "CompiledKernel") -> R:
        ...


# ============================================================
# Shared payload
# ============================================================

@dataclass(frozen=True)
class CustomKernel(ABC):
    """Fields common to every kernel flavor.

    Attributes:
        binary: Raw contents of the kernel file
        bindings: Declared parameters, Tensor/Data/Scalar order
        argument_names: Argument names in call order
        workgroup_dim_source: Operand list giving the launch extent
        workgroup_dim_index: Axis of that operand, -1 for the whole shape
        max_shaves: Upper bound on compute lanes, 0 for the default
        input_data_count: Number of Input/InputBuffer/Data parameters
    """
    binary: bytes
    bindings: tuple[KernelParam, ...]
    argument_names: tuple[str, ...]
    workgroup_dim_source: DimSource
    workgroup_dim_index: int
    max_shaves: int
    input_data_count: int

    @abstractmethod
    def accept(self, visitor: KernelVisitor[R]) -> R:
        ...

    def __repr__(self):
        return (
            f"{type(self).__name__}(args={list(self.argument_names)}, "
            f"dim=({self.workgroup_dim_source.value}, {self.workgroup_dim_index}), "
            f"max_shaves={self.max_shaves}, binary={len(self.binary)}B)"
        )


def _common_fields(node: Any, config_dir: str) -> dict[str, Any]:
    max_shaves = get_int_attr(node, "max-shaves", 0)
    if max_shaves < 0:
        raise InvalidDescriptor(f"Negative max-shaves {max_shaves}", node=node.tag, attribute="max-shaves")

    binary = load_kernel_binary(node, config_dir)
    bindings = tuple(parse_parameters(node))
    return dict(
        binary=binary,
        bindings=bindings,
        max_shaves=max_shaves,
        input_data_count=sum(1 for p in bindings if p.type.is_input_data),
    )


def _work_sizes(node: Any) -> Any:
    work_sizes = node.find("WorkSizes")
    if work_sizes is None:
        raise InvalidDescriptor(f"{node.tag} node has no WorkSizes", node=node.tag)
    return work_sizes


# ============================================================
# Native (CPP) kernels
# ============================================================

@dataclass(frozen=True, repr=False)
class NativeKernel(CustomKernel):
    """Kernel that partitions its own iteration space across lanes."""

    def accept(self, visitor: KernelVisitor[R]) -> R:
        return visitor.visit_native(self)

    @classmethod
    def from_xml(cls, node: Any, config_dir: str) -> "NativeKernel":
        fields = _common_fields(node, config_dir)
        dim_source, dim_index = parse_dim_source(get_str_attr(_work_sizes(node), "dim"))

        return cls(
            argument_names=tuple(p.arg_name for p in fields["bindings"]),
            workgroup_dim_source=dim_source,
            workgroup_dim_index=dim_index,
            **fields,
        )


# ============================================================
# Compiled (MVCL) kernels
# ============================================================

@dataclass(frozen=True, repr=False)
class CompiledKernel(CustomKernel):
    """Kernel compiled ahead-of-time with embedded argument metadata.

    Attributes:
        entry: Exported kernel name
        global_grid_size_rules: Global work size, one expression per dimension
        local_grid_size_rules: Local work size, one expression per dimension
        kernel_id: Kernel id inside the binary's metadata
    """
    entry: str
    global_grid_size_rules: tuple[str, ...]
    local_grid_size_rules: tuple[str, ...]
    kernel_id: int

    def accept(self, visitor: KernelVisitor[R]) -> R:
        return visitor.visit_compiled(self)

    @classmethod
    def from_xml(cls, node: Any, config_dir: str,
                 metadata_parser: MetadataParserFactory = NeoMetadataParser) -> "CompiledKernel":
        fields = _common_fields(node, config_dir)

        work_sizes = _work_sizes(node)
        dim_source, dim_index = parse_dim_source(get_str_attr(work_sizes, "dim"))
        global_rules = tuple(parse_size_rule(get_str_attr(work_sizes, "global")))
        local_rules = tuple(parse_size_rule(get_str_attr(work_sizes, "local")))

        entry = get_str_attr(node, "entry")
        binary = fields["binary"]
        metadata = section_bytes(binary, require_section(binary, METADATA_SECTION))
        strings = section_bytes(binary, require_section(binary, METADATA_STRINGS_SECTION))
        query = metadata_parser(metadata, strings)

        kernel_id = query.find_kernel(entry)
        if kernel_id is None:
            raise BinaryMismatch(f"Failed to find kernel with name `{entry}`", entry=entry)

        kernel_count = query.kernel_count()
        if kernel_count != 1:
            raise BinaryMismatch(
                f"Failed to load kernel binary '{entry}'\n"
                f"\tReason: binary should contain only one kernel, but contains {kernel_count}",
                entry=entry, kernel_count=kernel_count,
            )

        argument_names = deduce_kernel_arguments(query, kernel_id)
        logger.debug("kernel %s resolved to id %d with arguments %s", entry, kernel_id, argument_names)

        return cls(
            argument_names=argument_names,
            workgroup_dim_source=dim_source,
            workgroup_dim_index=dim_index,
            entry=entry,
            global_grid_size_rules=global_rules,
            local_grid_size_rules=local_rules,
            kernel_id=kernel_id,
            **fields,
        )
