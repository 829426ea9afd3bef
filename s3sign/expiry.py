"""Expiration windows for cacheable presigned URLs.

Time is cut into windows of ``window_size`` seconds. The signing date is
pulled back to the start of the current window and the expiry is pushed out
to a window boundary that covers the requested ttl::

        PAST       PRESENT      FUTURE
                      |
    -----+-----+-----+--+--+-----+-----+-----+--
         |     |     |  |  |     |     |     |   TIME
    -----+-----+-----+--+--+-----+-----+-----+--
                     |     |
       x-amz-date ---+     +--- expiry

Every URL signed inside one window for the same ttl is therefore identical.
"""

import datetime
from dataclasses import dataclass

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


@dataclass(frozen=True)
class ExpirationWindow:
    anchor: int
    expiry: int

    @property
    def lifetime(self) -> int:
        return self.expiry - self.anchor

    @property
    def anchor_datetime(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.anchor, tz=datetime.timezone.utc)

    @property
    def amz_date(self) -> str:
        return self.anchor_datetime.strftime(AMZ_DATE_FORMAT)


def to_epoch(now) -> int:
    if isinstance(now, datetime.datetime):
        if now.tzinfo is None:
            raise ValueError("naive datetimes are ambiguous; pass an aware UTC datetime")
        return int(now.timestamp())
    return int(now)


def align(now, ttl: int, window_size: int) -> ExpirationWindow:
    """Quantize ``now`` and ``ttl`` onto ``window_size`` boundaries.

    A ttl of zero, or one shorter than a window, still yields one full window.
    """
    if ttl < 0:
        raise ValueError(f"ttl must be non-negative, got {ttl}")
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size}")
    anchor = to_epoch(now) // window_size * window_size
    window_count = -(-ttl // window_size)
    expiry = anchor + max(window_count, 1) * window_size
    return ExpirationWindow(anchor=anchor, expiry=expiry)
