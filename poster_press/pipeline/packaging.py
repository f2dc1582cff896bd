# poster_press/pipeline/packaging.py
"""Source archive for modes that entitle the requester to the LaTeX sources."""

import zipfile
from pathlib import Path


def build_source_archive(source_path: Path, assets_dir: Path, archive_path: Path) -> Path:
    """
    Zip the rendered source and every staged asset.

    Archive layout: ``main.tex`` at the top, assets under ``assets/``.
    Entries are added in sorted order so identical inputs give identical
    member lists.

    Returns:
        archive_path
    """
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.write(source_path, arcname=source_path.name)
        for asset in sorted(assets_dir.rglob("*")):
            if asset.is_file():
                archive.write(
                    asset, arcname=f"{assets_dir.name}/{asset.relative_to(assets_dir).as_posix()}"
                )
    return archive_path
