# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/utils/fs.py

from __future__ import annotations

import grp
import os
import pwd
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Optional


def _uid(owner: Optional[str]) -> int:
    return -1 if owner is None else pwd.getpwnam(owner).pw_uid


def _gid(group: Optional[str]) -> int:
    return -1 if group is None else grp.getgrnam(group).gr_gid


def ensure_attrs(
    path: Path,
    *,
    mode: Optional[int] = None,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    """
    Make mode/owner/group match. Returns True when something had to change.
    Symlinks are left alone.
    """
    st = path.lstat()
    if stat.S_ISLNK(st.st_mode):
        return False

    changed = False
    if mode is not None and stat.S_IMODE(st.st_mode) != mode:
        changed = True
        if not dry_run:
            os.chmod(path, mode)

    uid, gid = _uid(owner), _gid(group)
    if (uid != -1 and st.st_uid != uid) or (gid != -1 and st.st_gid != gid):
        changed = True
        if not dry_run:
            os.chown(path, uid, gid)
    return changed


def _make_dirs(path: Path, owner: Optional[str], group: Optional[str]) -> None:
    """mkdir -p, giving every directory it creates the same owner and group."""
    missing = []
    while not path.exists():
        missing.append(path)
        path = path.parent
    for d in reversed(missing):
        d.mkdir()
        ensure_attrs(d, owner=owner, group=group)


def write_file(
    dest: Path,
    content: bytes,
    *,
    mode: Optional[int] = None,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    force: bool = True,
    dry_run: bool = False,
) -> bool:
    """
    Write *content* to *dest* atomically unless it is already identical.
    Returns True when the file or its attributes changed.
    """
    if dest.is_file():
        if not force:
            return ensure_attrs(dest, mode=mode, owner=owner, group=group, dry_run=dry_run)
        if dest.read_bytes() == content:
            return ensure_attrs(dest, mode=mode, owner=owner, group=group, dry_run=dry_run)

    if dry_run:
        return True

    _make_dirs(dest.parent, owner, group)
    fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.chmod(tmp, mode if mode is not None else 0o644)
        os.replace(tmp, dest)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    ensure_attrs(dest, owner=owner, group=group)
    return True


def ensure_directory(
    path: Path,
    *,
    mode: Optional[int] = None,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    if path.is_dir():
        return ensure_attrs(path, mode=mode, owner=owner, group=group, dry_run=dry_run)
    if path.exists() or path.is_symlink():
        raise FileExistsError(f"{path} exists and is not a directory")
    if dry_run:
        return True
    _make_dirs(path, owner, group)
    ensure_attrs(path, mode=mode if mode is not None else 0o755)
    return True


def ensure_absent(path: Path, *, dry_run: bool = False) -> bool:
    if not (path.exists() or path.is_symlink()):
        return False
    if dry_run:
        return True
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


def ensure_symlink(path: Path, target: str, *, dry_run: bool = False) -> bool:
    if path.is_symlink() and os.readlink(path) == target:
        return False
    if dry_run:
        return True
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        raise FileExistsError(f"{path} exists and is not a file or symlink")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.symlink_to(target)
    return True
