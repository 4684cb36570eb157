"""Load valve ramp traces from delimited text exports or in-memory data."""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config import DEFAULT_INGEST, Calibration, IngestConfig
from ..errors import InvalidTraceError
from .types import Trace

log = logging.getLogger(__name__)


def calibrate_positions(
    raw: np.ndarray,
    calibration: Optional[Calibration] = None,
    multiplier: float = DEFAULT_INGEST.position_multiplier,
) -> np.ndarray:
    """Convert raw sensor values to mm.

    With a Calibration: raw * scale - offset. Without one: raw * multiplier.
    """
    raw = np.asarray(raw, dtype=float)
    if calibration is None:
        return raw * multiplier
    return raw * calibration.scale - calibration.offset


def load_trace_from_samples(samples: Iterable[Any], file_id: str) -> Trace:
    """Build a Trace from (time, position) pairs or {"time", "position"} dicts.

    Positions are taken as already calibrated.
    """
    times: List[float] = []
    positions: List[float] = []
    for s in samples:
        if isinstance(s, Mapping):
            times.append(float(s["time"]))
            positions.append(float(s["position"]))
        else:
            t, p = s
            times.append(float(t))
            positions.append(float(p))
    return Trace(file_id=file_id, time=np.array(times), position=np.array(positions))


def load_trace_from_dict(data: Dict[str, Any]) -> Trace:
    """Build a Trace from an in-memory dict (e.g. from an API request).

    Accepts either parallel "time" and "position" arrays or a "data" list of
    samples. The file id is read from "file_id" or "fileName".

    Raises:
        ValueError: If required keys are missing or the trace is invalid.
    """
    file_id = data.get("file_id", data.get("fileName"))
    if file_id is None:
        raise ValueError("Missing required key: file_id")
    if "data" in data:
        return load_trace_from_samples(data["data"], str(file_id))
    missing = {"time", "position"} - set(data.keys())
    if missing:
        raise ValueError(f"Missing required keys: {missing}")
    return Trace(
        file_id=str(file_id),
        time=np.asarray(data["time"], dtype=float),
        position=np.asarray(data["position"], dtype=float),
    )


def load_trace(
    path: Union[str, Path],
    config: IngestConfig = DEFAULT_INGEST,
    file_id: Optional[str] = None,
) -> Trace:
    """Load one delimited trace export and return a calibrated Trace.

    Time is read from config.time_column, raw position from
    config.position_column. Rows whose time or position cell is not numeric
    (headers, comments, partial lines) are skipped.

    Raises:
        FileNotFoundError: If path does not exist.
        InvalidTraceError: If the file has too few columns, no numeric rows,
            or exceeds the sample ceiling.
        InsufficientDataError: If fewer than 10 samples remain.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    file_id = file_id or path.name

    with open(path, encoding="utf-8", errors="replace") as f:
        width = max((line.count(config.delimiter) + 1 for line in f if line.strip()), default=0)
    required = max(config.min_columns, config.time_column + 1, config.position_column + 1)
    if width < required:
        raise InvalidTraceError(
            f"Invalid format in {file_id}: expected at least {required} columns, got {width}"
        )

    # Named columns up to the widest row: short rows are padded with NaN, long rows fit
    try:
        df = pd.read_csv(
            path,
            header=None,
            names=list(range(width)),
            sep=config.delimiter,
            skip_blank_lines=True,
            encoding_errors="replace",
        )
    except pd.errors.ParserError as exc:
        raise InvalidTraceError(f"Could not parse {file_id}: {exc}") from exc

    t = pd.to_numeric(df.iloc[:, config.time_column], errors="coerce")
    raw = pd.to_numeric(df.iloc[:, config.position_column], errors="coerce")
    valid = t.notna() & raw.notna()
    skipped = int((~valid).sum())
    if skipped:
        log.debug("%s: skipped %d non-numeric rows", file_id, skipped)
    if not valid.any():
        raise InvalidTraceError(f"No valid time/position data found in {file_id}")
    if int(valid.sum()) > config.max_samples:
        raise InvalidTraceError(
            f"{file_id}: {int(valid.sum())} samples exceeds limit of {config.max_samples}"
        )

    position = calibrate_positions(
        raw[valid].to_numpy(dtype=float),
        calibration=config.calibration,
        multiplier=config.position_multiplier,
    )
    return Trace(file_id=file_id, time=t[valid].to_numpy(dtype=float), position=position)


def load_traces(
    paths: Sequence[Union[str, Path]],
    config: IngestConfig = DEFAULT_INGEST,
) -> List[Trace]:
    """Load several exports in acquisition order (file modification time, then name)."""
    ordered = sorted((Path(p) for p in paths), key=lambda p: (p.stat().st_mtime, p.name))
    return [load_trace(p, config=config) for p in ordered]
