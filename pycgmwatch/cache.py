import logging
import os
import time
from typing import Optional, List

from pycgmwatch.models import Reading
from pycgmwatch.utils import load_json_file, save_json_file

log = logging.getLogger(__name__)

CACHEFILE = ".pycgmwatch.cache"  # Stores the last fetched reading set
CACHE_MAX_AGE = 5 * 60  # Latest reading must be younger than this (seconds)


class ReadingCache:
    """
    Last reading set fetched from Dexcom Share

    The cache stays valid while its most recent reading is under five
    minutes old, since Dexcom will not have a newer reading before then.
    """

    def __init__(self, cachefile: Optional[str] = CACHEFILE, clock=time.time, max_age: float = CACHE_MAX_AGE):
        self.cachefile = cachefile
        self.clock = clock
        self.max_age = max_age
        self.entry = None
        if self.cachefile:
            self.entry = load_json_file(self.cachefile)

    def put(self, readings: List[Reading]):
        if not readings:
            return
        self.entry = {
            "readings": [r.to_dexcom() for r in readings],
            "cached_at": self.clock(),
        }
        if self.cachefile:
            try:
                save_json_file(self.cachefile, self.entry)
            except OSError as exc:
                log.error(f"Unable to write cache file {self.cachefile}: {exc}")
        log.debug(f"Cached {len(readings)} readings")

    def get(self) -> Optional[List[Reading]]:
        if not self.entry:
            return None
        records = self.entry.get("readings")
        if not records or not isinstance(records, list):
            return None
        latest = Reading.from_dexcom(records[0])
        if latest is None:
            return None
        age = self.clock() - latest.timestamp
        if age >= self.max_age:
            log.debug("Cache stale (latest is %.1f min old)" % (age / 60.0))
            return None
        log.debug("Using cached readings (latest is %.1f min old)" % (age / 60.0))
        return [r for r in (Reading.from_dexcom(record) for record in records) if r is not None]

    def clear(self):
        self.entry = None
        if self.cachefile:
            try:
                os.remove(self.cachefile)
            except FileNotFoundError:
                pass
            except OSError as exc:
                log.error(f"Unable to remove cache file {self.cachefile}: {exc}")
        log.debug("Cache cleared")
