"""Moving fetched content into place and keeping paths inside a root."""

from __future__ import annotations

import os
import shutil


def _remove_all(path: str) -> None:
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def move_dir(path: str, dst_path: str) -> None:
    """Replace dst_path with the directory at path."""
    try:
        _remove_all(dst_path)
    except OSError as err:
        raise OSError(f"Deleting dir {dst_path}: {err}") from err

    try:
        os.rename(path, dst_path)
    except OSError as err:
        raise OSError(f"Moving directory '{path}' to staging dir: {err}") from err


def move_file(path: str, dst_path: str) -> None:
    """Recreate dst_path as an empty 0700 directory and move the file into it."""
    try:
        _remove_all(dst_path)
    except OSError as err:
        raise OSError(f"Deleting dir {dst_path}: {err}") from err

    try:
        os.mkdir(dst_path, 0o700)
    except OSError as err:
        raise OSError(f"Creating dir {dst_path}: {err}") from err

    try:
        os.rename(path, os.path.join(dst_path, os.path.basename(path)))
    except OSError as err:
        raise OSError(f"Moving file '{path}' to staging dir: {err}") from err


def scoped_path(path: str, sub_path: str) -> str:
    """Join sub_path onto path, refusing results that escape path."""
    root = os.path.abspath(path)
    new_path = os.path.abspath(os.path.join(root, sub_path))

    if new_path != root and not new_path.startswith(root + os.sep):
        raise ValueError(f"Invalid path: {sub_path}")

    return new_path