"""
Result file writers.

Progressive results become one whitespace-separated ``time value`` file per
metric, named ``<base>.stats_<range>.<suffix>``.  The unidirectional file
interleaves its three counters as ``<counter> time value`` lines.  Overall
summaries of all ranges go into a single ``<base>.stats`` table.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from core.constants import (
    METRIC_UNIDIRECTIONAL,
    OVERALL_COLUMNS,
)
from topology.aggregator import (
    UNIDIRECTIONAL_SERIES,
    OverallSummary,
    ProgressiveResult,
    summaries_to_dataframe,
)

logger = logging.getLogger(__name__)


def format_range(tx_range: float) -> str:
    """Range label used in file names; a trailing ``.0`` is dropped."""
    label = repr(float(tx_range))
    if label.endswith('.0'):
        label = label[:-2]
    return label


def series_basename(basename: str, tx_range: float) -> str:
    return f"{basename}.stats_{format_range(tx_range)}"


def _ensure_parent(path: Path) -> None:
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def write_progressive(result: ProgressiveResult, basename: str) -> List[Path]:
    """
    Write the metric series of one progressive pass.

    Parameters
    ----------
    result : ProgressiveResult
        Series to write.
    basename : str
        Scenario base path; the range label and suffix are appended.

    Returns
    -------
    list of Path
        Files written, one per selected metric.
    """
    stem = series_basename(basename, result.tx_range)
    written: List[Path] = []

    frames = result.frames()
    for name, df in frames.items():
        if name in UNIDIRECTIONAL_SERIES:
            continue
        path = Path(f"{stem}.{name}")
        _ensure_parent(path)
        df.to_csv(path, sep=' ', header=False, index=False)
        written.append(path)

    if all(name in frames for name in UNIDIRECTIONAL_SERIES):
        parts = []
        for order, name in enumerate(UNIDIRECTIONAL_SERIES):
            df = frames[name].copy()
            df.insert(0, 'counter', name)
            df['order'] = order
            parts.append(df)
        uni = pd.concat(parts, ignore_index=True)
        uni = uni.sort_values(['time', 'order'], kind='mergesort')
        path = Path(f"{stem}.{METRIC_UNIDIRECTIONAL}")
        _ensure_parent(path)
        uni[['counter', 'time', 'value']].to_csv(path, sep=' ', header=False, index=False)
        written.append(path)

    logger.info("Wrote %d series files for range %s", len(written), format_range(result.tx_range))
    return written


def write_overall(summaries: Sequence[OverallSummary], basename: str) -> Path:
    """
    Write the ``<base>.stats`` table of overall summaries.

    The first summary's mobility, when present, is written as a
    ``# mobility=`` comment line above the column header.
    """
    path = Path(f"{basename}.stats")
    _ensure_parent(path)
    df = summaries_to_dataframe(summaries)
    with open(path, 'w') as f:
        if summaries and summaries[0].mobility is not None:
            f.write(f"# mobility={summaries[0].mobility!r}\n")
        f.write('# ' + ' '.join(f'"{c}"' for c in OVERALL_COLUMNS) + '\n')
        df.to_csv(f, sep=' ', header=False, index=False, na_rep='NaN')
    logger.info("Overall statistics saved to %s  (%d ranges)", path, len(df))
    return path


def write_results(results: Sequence[Union[ProgressiveResult, OverallSummary]],
                  basename: str) -> List[Path]:
    """Write every result of an engine run; returns the files written."""
    written: List[Path] = []
    summaries = [r for r in results if isinstance(r, OverallSummary)]
    for r in results:
        if isinstance(r, ProgressiveResult):
            written.extend(write_progressive(r, basename))
    if summaries:
        written.append(write_overall(summaries, basename))
    return written
