"""
Custom-layer config files.

A config file declares one or more custom layers, each bound to one or more
kernel descriptors:

    <CustomLayers>
      <CustomLayer name="ShuffleChannel" type="CPP">
        <Kernel max-shaves="16">
          <Source filename="shuffle_channels.elf"/>
          <Parameters>...</Parameters>
          <WorkSizes dim="input,0"/>
        </Kernel>
      </CustomLayer>
    </CustomLayers>

`type` selects the kernel flavor: MVCL for compiled kernels, CPP for native
ones. `Source` filenames are resolved against the config file's directory.

A failure while building one layer is reported as a CustomLayerError naming
that layer, so a caller can reject the layer rather than the whole graph.
"""

from __future__ import annotations
from typing import Any, Optional, Sequence, Union
from dataclasses import dataclass
from pathlib import Path
import logging

from lxml import etree

from vpu_custom.config import PathLike, custom_layer_config_paths
from vpu_custom.descriptor import get_str_attr
from vpu_custom.errors import CustomKernelError, CustomLayerError, InvalidDescriptor, KernelFileNotFound
from vpu_custom.kernel import CompiledKernel, CustomKernel, NativeKernel

logger = logging.getLogger(__name__)

__all__ = [
    "CustomLayer",
    "parse_kernel",
    "parse_custom_layer",
    "load_custom_layers",
    "load_configured_layers",
]

_KERNEL_TYPES = {
    "mvcl": CompiledKernel,
    "cpp": NativeKernel,
}


@dataclass(frozen=True)
class CustomLayer:
    """A named custom layer and its kernels, in declaration order."""
    name: str
    layer_type: str
    kernels: tuple[CustomKernel, ...]


def parse_kernel(node: Any, config_dir: str, kernel_type: str = "MVCL") -> CustomKernel:
    """Build the kernel flavor named by `kernel_type` from a `<Kernel>` node."""
    kernel_cls = _KERNEL_TYPES.get(kernel_type.lower())
    if kernel_cls is None:
        raise InvalidDescriptor(
            f"Custom layer type should be MVCL or CPP, got '{kernel_type}'",
            attribute="type",
        )
    return kernel_cls.from_xml(node, config_dir)


def parse_custom_layer(node: Any, config_dir: str) -> CustomLayer:
    """Build one `<CustomLayer>` element."""
    name = get_str_attr(node, "name")
    layer_type = get_str_attr(node, "type", "MVCL")

    kernel_nodes = node.findall("Kernel")
    try:
        if not kernel_nodes:
            raise InvalidDescriptor("CustomLayer has no Kernel nodes", node=node.tag)
        kernels = tuple(parse_kernel(k, config_dir, layer_type) for k in kernel_nodes)
    except CustomKernelError as exc:
        raise CustomLayerError(f"Failed to load custom layer '{name}': {exc}", layer_name=name) from exc

    logger.debug("custom layer %s: %d %s kernel(s)", name, len(kernels), layer_type)
    return CustomLayer(name=name, layer_type=layer_type, kernels=kernels)


def load_custom_layers(path: PathLike) -> dict[str, list[CustomLayer]]:
    """Parse one config file; layers are grouped by name."""
    path = Path(path)
    try:
        tree = etree.parse(str(path))
    except OSError as exc:
        raise KernelFileNotFound(str(path)) from exc
    except etree.XMLSyntaxError as exc:
        raise InvalidDescriptor(f"Failed to parse custom layers config {path}: {exc}") from exc

    root = tree.getroot()
    nodes = [root] if root.tag == "CustomLayer" else root.findall("CustomLayer")
    config_dir = str(path.parent)

    layers: dict[str, list[CustomLayer]] = {}
    for node in nodes:
        layer = parse_custom_layer(node, config_dir)
        layers.setdefault(layer.name, []).append(layer)

    logger.debug("loaded %d custom layer(s) from %s", len(nodes), path)
    return layers


def load_configured_layers(
    explicit: Optional[Union[PathLike, Sequence[PathLike]]] = None,
) -> dict[str, list[CustomLayer]]:
    """Load and merge every config file found by `custom_layer_config_paths`."""
    merged: dict[str, list[CustomLayer]] = {}
    for path in custom_layer_config_paths(explicit):
        for name, layers in load_custom_layers(path).items():
            merged.setdefault(name, []).extend(layers)
    return merged
