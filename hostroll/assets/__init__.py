"""Bundled Nix expressions, unpacked into the process temp dir at startup."""

from __future__ import annotations

import shutil
from importlib import resources
from pathlib import Path

from ..constants import EVAL_MACHINES_ASSET


def unpack_assets(target_dir: Path) -> Path:
    """Copy the bundled assets into ``target_dir``; return the asset root."""
    root = target_dir / "assets"
    root.mkdir(parents=True, exist_ok=True)
    source = resources.files(__name__).joinpath(EVAL_MACHINES_ASSET)
    with resources.as_file(source) as src:
        shutil.copyfile(src, root / EVAL_MACHINES_ASSET)
    return root
