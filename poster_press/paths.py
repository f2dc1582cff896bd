# poster_press/paths.py
"""
Canonical storage keys.

Keys are ``<bucket>/<path>`` strings; every project owns the
``projects/<project_id>/`` prefix.
"""

import re

from poster_press.models.jobs import RenderMode

PROJECTS_BUCKET = "projects"
ARCHIVE_NAME = "poster_source.zip"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def project_prefix(project_id: str) -> str:
    return f"{PROJECTS_BUCKET}/{project_id}"


def bundle_key(project_id: str) -> str:
    """Key of the project's input bundle."""
    return f"{project_prefix(project_id)}/ai_summary.json"


def figure_key(project_id: str, storage_name: str) -> str:
    """Key of an uploaded figure image."""
    return f"{project_prefix(project_id)}/poster/assets/{storage_name}"


def pdf_key(project_id: str, mode: RenderMode) -> str:
    return f"{project_prefix(project_id)}/poster/{mode.artifact_name}"


def archive_key(project_id: str) -> str:
    return f"{project_prefix(project_id)}/poster/{ARCHIVE_NAME}"


def basename(path: str) -> str:
    """
    Last component of a storage path.

    Both separators are stripped so a figure path can never point outside
    the assets directory. Returns "" for paths ending in a separator or
    naming "." / "..".
    """
    name = re.split(r"[\\/]", path.strip())[-1]
    if name in (".", ".."):
        return ""
    return name


def asset_name(storage_name: str) -> str:
    """
    File name used for a figure inside the working directory.

    Characters that mean something to TeX are replaced with "_" so the name
    can be placed in \\includegraphics without escaping.
    """
    return _UNSAFE_NAME_CHARS.sub("_", storage_name)
