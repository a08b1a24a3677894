"""
Shared descriptor parsing for custom-layer kernels.

Routines common to every kernel variant:
- attribute access with required/optional semantics
- dimension-source, layout-format and size-rule parsing
- loading of the kernel binary referenced by `<Source>`
- the `<Parameters>` block (Tensor, Data and Scalar children)

Nodes are ElementTree-compatible elements (lxml.etree or xml.etree).
"""

from __future__ import annotations
from typing import Any, Optional
import logging
import re

from vpu_custom.errors import InvalidDescriptor, KernelFileNotFound
from vpu_custom.types import DataFormat, DimSource, KernelParam, ParamType

logger = logging.getLogger(__name__)

__all__ = [
    "get_str_attr",
    "get_int_attr",
    "parse_dim_source",
    "parse_layout_format",
    "parse_size_rule",
    "load_kernel_binary",
    "parse_parameters",
]

_REQUIRED = object()

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INDEX_RE = re.compile(r"[0-9]+")


# ============================================================
# Attribute access
# ============================================================

def get_str_attr(node: Any, name: str, default: Any = _REQUIRED) -> Optional[str]:
    """Read a string attribute; raise InvalidDescriptor if required and absent."""
    value = node.get(name)
    if value is None:
        if default is _REQUIRED:
            raise InvalidDescriptor(
                f"{node.tag} node has no required attribute '{name}'",
                node=node.tag, attribute=name,
            )
        return default
    return value


def get_int_attr(node: Any, name: str, default: Any = _REQUIRED) -> int:
    """Read an integer attribute; raise InvalidDescriptor on absence or bad text."""
    value = get_str_attr(node, name, _REQUIRED if default is _REQUIRED else None)
    if value is None:
        return default
    if not _INT_RE.fullmatch(value.strip()):
        raise InvalidDescriptor(
            f"{node.tag} node has a non-integer '{name}' attribute '{value}'",
            node=node.tag, attribute=name,
        )
    return int(value.strip())


# ============================================================
# Token parsing
# ============================================================

_DIM_SOURCES = {
    "input": DimSource.Input,
    "output": DimSource.Output,
}

_FORMATS = {
    "BFYX": DataFormat.BFYX,
    "BYXF": DataFormat.BYXF,
    "FYX": DataFormat.FYX,
    "YXF": DataFormat.YXF,
    "BF": DataFormat.BF,
    "ANY": DataFormat.Any,
}


def parse_dim_source(text: str) -> tuple[DimSource, int]:
    """Parse `"<input|output>[,<index>]"`.

    Returns (source, index); index is -1 when omitted, meaning the whole
    shape.

    Example:
        parse_dim_source("input,2")  # (DimSource.Input, 2)
        parse_dim_source("output")   # (DimSource.Output, -1)
    """
    source, sep, index_text = text.partition(",")
    dim_source = _DIM_SOURCES.get(source.lower())
    if dim_source is None:
        raise InvalidDescriptor(f"Invalid dim source argument '{source}'", attribute="dim")

    if not sep:
        return dim_source, -1

    if not _INDEX_RE.fullmatch(index_text.strip()):
        raise InvalidDescriptor(f"Invalid dim index '{index_text}' in '{text}'", attribute="dim")
    return dim_source, int(index_text.strip())


def parse_layout_format(text: Optional[str], default: str = "BFYX") -> DataFormat:
    """Case-insensitive layout token lookup; None selects `default`."""
    token = default if text is None else text
    fmt = _FORMATS.get(token.upper())
    if fmt is None:
        raise InvalidDescriptor(f"Tensor node has an invalid format '{token}'", attribute="format")
    return fmt


def parse_size_rule(text: str) -> list[str]:
    """Split a size rule into its per-dimension expressions.

    Expressions are kept verbatim; they are evaluated later against actual
    shapes.
    """
    return text.split(",")


# ============================================================
# Kernel binary
# ============================================================

def load_kernel_binary(node: Any, config_dir: str) -> bytes:
    """Read the file named by the first `<Source>` child of `node`.

    The path is `config_dir + "/" + filename`.
    """
    sources = node.findall("Source")
    if not sources:
        raise InvalidDescriptor("Kernel binary not found", node=node.tag)
    if len(sources) > 1:
        logger.warning("%s node has %d Source elements; only the first is used", node.tag, len(sources))

    path = f"{config_dir}/{get_str_attr(sources[0], 'filename', '')}"
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as exc:
        raise KernelFileNotFound(path) from exc

    logger.debug("loaded kernel binary %s (%d bytes)", path, len(data))
    return data


# ============================================================
# <Parameters> block
# ============================================================

_TENSOR_TYPES = {
    "input": ParamType.Input,
    "output": ParamType.Output,
    "input_buffer": ParamType.InputBuffer,
    "output_buffer": ParamType.OutputBuffer,
    "data": ParamType.Data,
}

_DATA_TYPES = {
    "data": ParamType.Data,
    "local_data": ParamType.LocalData,
}

_SCALAR_TYPES = {
    "int": ParamType.Int,
    "float": ParamType.Float,
}


def _param_type(node: Any, table: dict[str, ParamType]) -> ParamType:
    type_str = get_str_attr(node, "type")
    param_type = table.get(type_str.lower())
    if param_type is None:
        raise InvalidDescriptor(
            f"{node.tag} node has an invalid type '{type_str}'",
            node=node.tag, attribute="type",
        )
    return param_type


def _value_source(node: Any, param_type: ParamType, arg_name: str) -> tuple[Optional[str], Optional[DimSource], int]:
    """Read `source`/`dim` of a data parameter: at most one, exactly one for Data."""
    ir_source = get_str_attr(node, "source", "")
    dim_text = get_str_attr(node, "dim", "")

    if ir_source and dim_text:
        raise InvalidDescriptor(f"{node.tag} node '{arg_name}' can only have source or dim", node=node.tag)
    # LocalData sizes come from `size`; only plain Data needs a value source.
    if param_type == ParamType.Data and not ir_source and not dim_text:
        raise InvalidDescriptor(f"{node.tag} node '{arg_name}' has no source or dim", node=node.tag)

    dim_source, dim_index = None, -1
    if dim_text:
        dim_source, dim_index = parse_dim_source(dim_text)
    return ir_source or None, dim_source, dim_index


def _parse_tensor(node: Any) -> KernelParam:
    param_type = _param_type(node, _TENSOR_TYPES)
    arg_name = get_str_attr(node, "arg-name")

    size_rule, ir_source = None, None
    dim_source, dim_index = None, -1
    if param_type.is_buffer:
        size_rule = parse_size_rule(get_str_attr(node, "size"))[0]
        dim_source, dim_index = parse_dim_source(get_str_attr(node, "dim"))
    elif param_type == ParamType.Data:
        ir_source, dim_source, dim_index = _value_source(node, param_type, arg_name)

    return KernelParam(
        type=param_type,
        arg_name=arg_name,
        format=parse_layout_format(get_str_attr(node, "format", None)),
        port_index=get_int_attr(node, "port-index"),
        ir_source=ir_source,
        buffer_size_rule=size_rule,
        dim_source=dim_source,
        dim_index=dim_index,
    )


def _parse_data(node: Any) -> KernelParam:
    param_type = _param_type(node, _DATA_TYPES)
    arg_name = get_str_attr(node, "arg-name")
    ir_source, dim_source, dim_index = _value_source(node, param_type, arg_name)

    size_rule = None
    if param_type == ParamType.LocalData:
        size_rule = get_str_attr(node, "size")

    return KernelParam(
        type=param_type,
        arg_name=arg_name,
        ir_source=ir_source,
        buffer_size_rule=size_rule,
        dim_source=dim_source,
        dim_index=dim_index,
    )


def _parse_scalar(node: Any) -> KernelParam:
    param_type = _param_type(node, _SCALAR_TYPES)
    return KernelParam(
        type=param_type,
        arg_name=get_str_attr(node, "arg-name"),
        port_index=get_int_attr(node, "port-index", -1),
        ir_source=get_str_attr(node, "source", "") or None,
    )


def parse_parameters(node: Any) -> list[KernelParam]:
    """Parse the `<Parameters>` child of a kernel node.

    Order is a contract for positional binding: all Tensor children, then all
    Data children, then all Scalar children, each in document order.
    """
    parameters = node.find("Parameters")
    if parameters is None:
        return []

    params = [_parse_tensor(n) for n in parameters.findall("Tensor")]
    params += [_parse_data(n) for n in parameters.findall("Data")]
    params += [_parse_scalar(n) for n in parameters.findall("Scalar")]
    return params
