import logging
import os

from django.core.files.storage import default_storage
from django.utils.crypto import get_random_string

logger = logging.getLogger(__name__)


def save_photos(files, folder):
    """Store already validated images and return their storage names in order.

    Missing uploads keep their slot as an empty name.
    """
    names = []
    for upload in files:
        if upload is None:
            names.append("")
            continue
        ext = os.path.splitext(upload.name)[1].lower()
        path = os.path.join(folder, f"{get_random_string(12)}{ext}")
        names.append(default_storage.save(path, upload))
    return names


def discard_photos(names):
    """Remove files stored for a request the workflow rejected."""
    for name in names:
        if not name:
            continue
        try:
            default_storage.delete(name)
        except OSError:
            logger.exception("Could not remove rejected upload %s", name)
