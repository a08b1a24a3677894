"""
Exception Hierarchy for the VPU custom-layer kernel loader.

This module defines the exception taxonomy for descriptor loading.
All exceptions inherit from CustomKernelError for consistent error handling.

Exception Hierarchy:
    CustomKernelError (base)
    ├── InvalidDescriptor (malformed or contradictory XML descriptor)
    ├── KernelFileNotFound (kernel binary cannot be read)
    ├── MalformedBinary (ELF structure or metadata section broken)
    ├── BinaryMismatch (binary does not hold the expected kernel)
    ├── MetadataParseError (kernel argument cannot be decoded)
    └── CustomLayerError (layer-level failure, attributes the layer)
"""

from __future__ import annotations


class CustomKernelError(Exception):
    """Base exception for all custom-layer loading errors.

    Example:
        try:
            layers = load_custom_layers("custom.xml")
        except CustomKernelError as e:
            print(f"custom layer error: {e}")
    """
    pass


# ============================================================
# Descriptor Errors
# ============================================================

class InvalidDescriptor(CustomKernelError):
    """Malformed descriptor XML.

    Raised for missing required attributes and for bad dimension sources,
    format tokens, parameter type tokens, or a Data node with zero or two of
    `source`/`dim`.

    Attributes:
        message: Error description
        node: Tag of the offending XML node (if available)
        attribute: Name of the offending attribute (if available)
    """
    def __init__(self, message: str, node: str = None, attribute: str = None):
        self.node = node
        self.attribute = attribute
        super().__init__(message)


class KernelFileNotFound(CustomKernelError, FileNotFoundError):
    """Kernel binary referenced by a `Source` element cannot be opened.

    Attributes:
        path: The resolved path that failed to open
    """
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Couldn't open kernel file {path}")


# ============================================================
# Binary Errors
# ============================================================

class MalformedBinary(CustomKernelError):
    """Kernel binary does not have the expected ELF structure.

    Raised when a required section is absent or when an offset or length
    read from the binary falls outside the binary.

    Attributes:
        message: Error description
        section: Name of the section being resolved (if available)
    """
    def __init__(self, message: str, section: str = None):
        self.section = section
        super().__init__(message)


class BinaryMismatch(CustomKernelError):
    """Kernel binary does not match its descriptor.

    Attributes:
        message: Error description
        entry: Entry point name requested by the descriptor
        kernel_count: Number of kernels found in the binary (if known)
    """
    def __init__(self, message: str, entry: str = None, kernel_count: int = None):
        self.entry = entry
        self.kernel_count = kernel_count
        super().__init__(message)


class MetadataParseError(CustomKernelError):
    """A kernel argument record could not be decoded from the metadata."""
    pass


# ============================================================
# Frontend Errors
# ============================================================

class CustomLayerError(CustomKernelError):
    """Construction of one custom layer failed.

    The original error is available as `__cause__`.

    Attributes:
        message: Error description
        layer_name: Name of the failing custom layer
    """
    def __init__(self, message: str, layer_name: str = None):
        self.layer_name = layer_name
        super().__init__(message)


# ============================================================
# __all__ exports
# ============================================================

__all__ = [
    "CustomKernelError",
    "InvalidDescriptor",
    "KernelFileNotFound",
    "MalformedBinary",
    "BinaryMismatch",
    "MetadataParseError",
    "CustomLayerError",
]
