import errno
import logging
import os
import shutil

from send2trash import send2trash

from optimizer_io.path_utils import ensure_parent

logger = logging.getLogger(__name__)


def file_size(path: str) -> int:
    return int(os.stat(path).st_size)


def move_file(src: str, dst: str) -> None:
    """Atomic rename where possible; falls back to copy+delete across devices."""
    ensure_parent(dst)
    try:
        os.replace(src, dst)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(src, dst)


def trash_file(path: str, use_trash: bool = True) -> bool:
    """Send path to the recycle bin (or delete it). False when nothing was there."""
    if not os.path.lexists(path):
        return False
    if use_trash:
        send2trash(path)
    else:
        os.remove(path)
    return True


def discard(path: str, use_trash: bool = True) -> None:
    """Best-effort removal of an output we no longer want. Never raises."""
    try:
        trash_file(path, use_trash=use_trash)
        return
    except Exception as e:
        logger.warning("Could not trash %s: %s", path, e)
    try:
        if os.path.lexists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)


def stash_in_trash(path: str, staging_dir: str, use_trash: bool = True) -> None:
    """Put a recoverable copy of path into the trash while leaving path in place.

    The copy is a hard link where the filesystem allows it, so no bytes move;
    otherwise the file is copied. It is staged under staging_dir with the
    original file name, which is the name that shows up in the trash.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
    if not use_trash:
        return

    os.makedirs(staging_dir, exist_ok=False)
    backup = os.path.join(staging_dir, os.path.basename(path))
    try:
        try:
            os.link(path, backup)
        except OSError:
            shutil.copy2(path, backup)
        send2trash(backup)
    finally:
        if os.path.lexists(backup):
            os.remove(backup)
        os.rmdir(staging_dir)
