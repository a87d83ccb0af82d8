from __future__ import annotations
import dataclasses
from datetime import datetime, timezone
from typing import Any


def json_default(obj: Any) -> Any:
    """``json.dumps`` hook for record dataclasses and timestamps."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def epoch_to_datetime(raw: Any) -> datetime | None:
    """The API sends timestamps as epoch seconds, usually quoted ("1700000000")."""
    if raw is None or raw == "":
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp out of range: {raw!r}") from e
