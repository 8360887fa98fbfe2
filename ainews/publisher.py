from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

log = logging.getLogger(__name__)

_name_lock = threading.Lock()
_last_stamp = 0


def _unique_millis() -> int:
    global _last_stamp
    with _name_lock:
        stamp = int(time.time() * 1000)
        if stamp <= _last_stamp:
            stamp = _last_stamp + 1
        _last_stamp = stamp
        return stamp


def timestamped_filename(prefix: str, extension: str, separator: str = "-") -> str:
    """`news-image-1718000000000.png`-style names; never repeats within a process."""
    return f"{prefix}{separator}{_unique_millis()}.{extension.lstrip('.')}"


class AssetPublisher:
    """Upload binaries to a public Supabase Storage bucket and hand back their URLs."""

    def __init__(self, client: Any, bucket: str = "media"):
        self.client = client
        self.bucket = bucket

    def publish(self, data: Optional[bytes], filename: str, content_type: str) -> Optional[str]:
        if not data:
            return None
        try:
            store = self.client.storage.from_(self.bucket)
            store.upload(
                filename,
                data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
            url = store.get_public_url(filename)
        except Exception as e:
            log.error("Upload of %s to bucket %s failed: %s", filename, self.bucket, e)
            return None
        # Some client versions append a bare "?" to public URLs
        url = url.rstrip("?") if isinstance(url, str) else None
        if url:
            log.info("Uploaded %s -> %s", filename, url)
        return url
