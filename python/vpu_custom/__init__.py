"""
VPU custom-layer kernel loader

Turns a custom-layer XML descriptor plus its kernel binary into an immutable
binding a code generator can dispatch:
- Descriptor model: KernelParam, ParamType, DataFormat, DimSource
- Kernel flavors: NativeKernel (CPP), CompiledKernel (MVCL)
- Dispatch by flavor: KernelVisitor
- Config files: load_custom_layers, load_configured_layers
"""

__version__ = "0.1.0"

# ============================================================
# Descriptor model
# ============================================================

from vpu_custom.types import DataFormat, DimSource, KernelParam, ParamType

# ============================================================
# Errors
# ============================================================

from vpu_custom.errors import (
    CustomKernelError,
    InvalidDescriptor,
    KernelFileNotFound,
    MalformedBinary,
    BinaryMismatch,
    MetadataParseError,
    CustomLayerError,
)

# ============================================================
# Shared descriptor parsing
# ============================================================

from vpu_custom.descriptor import (
    parse_dim_source,
    parse_layout_format,
    parse_size_rule,
    load_kernel_binary,
    parse_parameters,
)

# ============================================================
# Binary metadata
# ============================================================

from vpu_custom.elf import ElfSection, find_section, require_section, section_bytes
from vpu_custom.metadata import (
    ArgFlags,
    MetadataQuery,
    NeoMetadataParser,
    deduce_kernel_arguments,
)

# ============================================================
# Kernels
# ============================================================

from vpu_custom.kernel import KernelVisitor, CustomKernel, NativeKernel, CompiledKernel

# ============================================================
# Config files
# ============================================================

from vpu_custom.config import CUSTOM_LAYERS_ENV, custom_layer_config_paths
from vpu_custom.custom_layer import (
    CustomLayer,
    parse_kernel,
    parse_custom_layer,
    load_custom_layers,
    load_configured_layers,
)

__all__ = [
    "__version__",

    # Descriptor model
    "DataFormat", "DimSource", "KernelParam", "ParamType",

    # Errors
    "CustomKernelError", "InvalidDescriptor", "KernelFileNotFound",
    "MalformedBinary", "BinaryMismatch", "MetadataParseError", "CustomLayerError",

    # Shared descriptor parsing
    "parse_dim_source", "parse_layout_format", "parse_size_rule",
    "load_kernel_binary", "parse_parameters",

    # Binary metadata
    "ElfSection", "find_section", "require_section", "section_bytes",
    "ArgFlags", "MetadataQuery", "NeoMetadataParser", "deduce_kernel_arguments",

    # Kernels
    "KernelVisitor", "CustomKernel", "NativeKernel", "CompiledKernel",

    # Config files
    "CUSTOM_LAYERS_ENV", "custom_layer_config_paths",
    "CustomLayer", "parse_kernel", "parse_custom_layer",
    "load_custom_layers", "load_configured_layers",
]
