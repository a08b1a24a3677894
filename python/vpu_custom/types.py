"""
Descriptor model for custom-layer kernels.

Plain records describing one kernel parameter binding. The enums carry the
XML tokens as their values.
"""

from __future__ import annotations
from typing import Optional
from dataclasses import dataclass
from enum import Enum


class ParamType(Enum):
    """Kernel parameter kinds."""
    Input = "input"
    Output = "output"
    Data = "data"
    LocalData = "local_data"
    InputBuffer = "input_buffer"
    OutputBuffer = "output_buffer"
    Int = "int"
    Float = "float"

    @property
    def is_input_data(self) -> bool:
        """True for kinds bound as leading operator inputs."""
        return self in (ParamType.Input, ParamType.InputBuffer, ParamType.Data)

    @property
    def is_buffer(self) -> bool:
        return self in (ParamType.InputBuffer, ParamType.OutputBuffer)


class DataFormat(Enum):
    """Tensor layout formats."""
    BYXF = "byxf"           # NHWC, channels last
    BFYX = "bfyx"           # NCHW, channels first
    YXF = "yxf"             # HWC
    FYX = "fyx"             # CHW
    BF = "bf"               # NC
    Any = "any"             # layout does not matter
    Unspecified = "none"


class DimSource(Enum):
    """Which operand list supplies a runtime dimension."""
    Input = "input"
    Output = "output"


@dataclass(frozen=True)
class KernelParam:
    """One declared kernel argument binding.

    `dim_source` is None when the parameter does not derive a size from an
    operand shape. `dim_index == -1` selects the whole shape rather than one
    axis.
    """
    type: ParamType
    arg_name: str
    format: DataFormat = DataFormat.Any
    port_index: int = -1
    ir_source: Optional[str] = None
    buffer_size_rule: Optional[str] = None
    dim_source: Optional[DimSource] = None
    dim_index: int = -1

    def __repr__(self):
        parts = [f"{self.type.name}", f"arg_name={self.arg_name!r}"]
        if self.port_index != -1:
            parts.append(f"port={self.port_index}")
        if self.ir_source:
            parts.append(f"source={self.ir_source!r}")
        if self.buffer_size_rule is not None:
            parts.append(f"size={self.buffer_size_rule!r}")
        if self.dim_source is not None:
            parts.append(f"dim=({self.dim_source.value}, {self.dim_index})")
        return f"KernelParam({', '.join(parts)})"
