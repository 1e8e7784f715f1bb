import logging
import os
import stat

from optimizer_io.path_utils import is_hidden_name, norm_abs_path

logger = logging.getLogger(__name__)


def iter_files(source_root: str, skip_cb=None):
    """Yield regular, non-hidden files under source_root.

    Symlinks are never followed nor yielded. A root that cannot be opened is
    reported once and produces nothing. Every call walks the tree afresh.
    """

    def _skip(reason: str, path: str):
        if skip_cb:
            try:
                skip_cb(reason, path)
            except Exception:
                logger.exception("skip_cb failed for %s", path)

    root = norm_abs_path(source_root)
    if not os.path.isdir(root):
        logger.warning("Could not open source folder: %s", root)
        _skip("root_unreadable", root)
        return

    def _onerror(err: OSError):
        where = err.filename or root
        if norm_abs_path(where) == root:
            logger.warning("Could not open source folder: %s (%s)", root, err.strerror)
            _skip("root_unreadable", root)
        else:
            logger.warning("Skipping unreadable folder: %s (%s)", where, err.strerror)
            _skip("dir_unreadable", where)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_onerror, followlinks=False):
        # prune hidden and linked directories in place
        for d in list(dirnames):
            if is_hidden_name(d) or os.path.islink(os.path.join(dirpath, d)):
                dirnames.remove(d)
        dirnames.sort()

        for fn in sorted(filenames):
            full = os.path.join(dirpath, fn)
            if is_hidden_name(fn):
                _skip("hidden", full)
                continue
            try:
                st = os.lstat(full)
            except FileNotFoundError:
                _skip("missing_during_scan", full)
                continue
            except PermissionError:
                logger.warning("Permission denied: %s", full)
                _skip("permission_denied", full)
                continue
            except OSError as e:
                logger.warning("Cannot stat %s: %s", full, e)
                _skip("os_stat_error", full)
                continue
            if not stat.S_ISREG(st.st_mode):
                _skip("not_regular", full)
                continue
            yield full
