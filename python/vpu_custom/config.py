"""
Configuration for locating custom-layer config files.

Config files are named explicitly by the caller or through the
`VPU_CUSTOM_LAYERS` environment variable (entries separated by
`os.pathsep`).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence, Union

CUSTOM_LAYERS_ENV = "VPU_CUSTOM_LAYERS"

PathLike = Union[str, os.PathLike]


def custom_layer_config_paths(explicit: Optional[Union[PathLike, Sequence[PathLike]]] = None) -> list[Path]:
    """Locate custom-layer config XML files.

    Resolution order:
    1) `explicit` (one path or a sequence of paths)
    2) `VPU_CUSTOM_LAYERS`, entries separated by `os.pathsep`

    Returns an empty list when neither is set.
    """
    if explicit is not None:
        if isinstance(explicit, (str, os.PathLike)):
            entries = [explicit]
        else:
            entries = list(explicit)
    else:
        entries = os.environ.get(CUSTOM_LAYERS_ENV, "").split(os.pathsep)

    return [Path(e).expanduser().resolve() for e in entries if str(e).strip()]
