"""Gzip compression of rotated log files, preserving modification time."""

import gzip
import logging
import os
import shutil

logger = logging.getLogger(__name__)

GZIP_EXTENSION = ".gz"


def compress_file(source: str, target: str, level: int = 9) -> bool:
    """Gzip ``source`` into ``target``, then delete ``source``.

    Returns False without touching anything when the source is missing, is a
    directory, or the target already exists. The target receives the
    source's access and modification times so age-based retention keeps
    counting from the original rotation.
    """
    if not os.path.exists(source) or os.path.isdir(source) or os.path.exists(target):
        logger.debug("Skipping compression of %s (target %s)", source, target)
        return False

    stat = os.stat(source)
    try:
        with open(source, "rb") as f_in, gzip.open(target, "wb", compresslevel=level) as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.utime(target, (stat.st_atime, stat.st_mtime))
    except BaseException:
        # leave no partial archive behind, the next sweep retries from source
        if os.path.exists(target):
            os.remove(target)
        raise

    os.remove(source)
    return True
