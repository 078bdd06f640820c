from datetime import datetime
from zoneinfo import ZoneInfo

from ..config import get_settings


def local_now() -> datetime:
    """Current wall-clock time in the configured timezone, as a naive datetime."""
    return datetime.now(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)
