"""Small helpers for serialization/coercion at the engine's output boundary."""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd


def make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serializable forms.

    Non-finite floats (NaN, +/-inf) become ``None``; callers that need to
    distinguish an unbounded value carry a separate boolean next to it.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return make_json_safe({f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)})

    if isinstance(obj, Mapping):
        out = {}
        for key, value in obj.items():
            if isinstance(key, (pd.Timestamp, datetime, date)):
                safe_key = key.isoformat()
            elif isinstance(key, (int, float, str, bool, type(None))):
                safe_key = key
            else:
                safe_key = str(key)
            out[safe_key] = make_json_safe(value)
        return out

    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj) if isinstance(obj, (set, frozenset)) else obj
        return [make_json_safe(item) for item in items]

    if isinstance(obj, pd.DataFrame):
        return [make_json_safe(row) for row in obj.to_dict("records")]

    if isinstance(obj, pd.Series):
        return {str(k): make_json_safe(v) for k, v in obj.to_dict().items()}

    if isinstance(obj, np.ndarray):
        return [make_json_safe(v) for v in obj.tolist()]

    if isinstance(obj, np.bool_):
        return bool(obj)

    if isinstance(obj, np.integer):
        return int(obj)

    if isinstance(obj, np.floating):
        obj = float(obj)

    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None

    if isinstance(obj, (pd.Timestamp, datetime, date)):
        return obj.isoformat()

    if isinstance(obj, (int, str, bool, type(None))):
        return obj

    return str(obj)


def _to_float(value: Any) -> float | None:
    """Convert to finite float; return None for missing/invalid values."""
    try:
        if value is None:
            return None
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out
