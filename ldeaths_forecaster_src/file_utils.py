# ldeaths_forecaster_src/file_utils.py

import csv
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Any, Sequence, Tuple
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def append_metrics_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str]) -> None:
    """
    Append a single metrics row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to metrics CSV file (None to skip writing)
    row : Dict[str, Any]
        Dictionary containing metric values to write; keys outside ``header`` are ignored
    header : List[str]
        List of column names for the CSV

    Notes
    -----
    - Creates parent directories if they don't exist
    - Writes header row only if the file doesn't exist or is empty
    """
    if csv_path is None:
        return

    csv_path.parent.mkdir(parents=True, exist_ok=True)
    exists = csv_path.exists() and csv_path.stat().st_size > 0

    with csv_path.open("a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
        if not exists:
            writer.writeheader()
        writer.writerow(row)


def _fmt(value: Any, floatfmt: str) -> str:
    if isinstance(value, float):
        return format(value, floatfmt)
    return str(value)


def md_table_from_df(df: pd.DataFrame, index: bool = False, floatfmt: str = ".3f") -> str:
    """
    Render a DataFrame as a pipe table for the run report.

    Parameters
    ----------
    df : pd.DataFrame
        Table to render
    index : bool, default=False
        Emit the index (named or not) as the leading column
    floatfmt : str, default=".3f"
        Format spec for float cells; other cells use ``str``

    Returns
    -------
    str
        Markdown table, or an empty string for a frame without columns
    """
    table = df.reset_index() if index else df
    if len(table.columns) == 0:
        return ""

    def _line(cells) -> str:
        return "| " + " | ".join(cells) + " |"

    lines = [_line(str(c) for c in table.columns), _line("---" for _ in table.columns)]
    lines.extend(_line(_fmt(v, floatfmt) for v in rec) for rec in table.itertuples(index=False, name=None))
    return "\n".join(lines)


def write_report_md(report_path: Path,
                    title: str,
                    sections: Sequence[Tuple[str, str]]) -> Path:
    """
    Write a markdown report made of ``(heading, body)`` sections.

    The file is overwritten on each run and stamped with the UTC time.
    """
    ensure_dir(report_path.parent)
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds")
    with report_path.open("w", encoding="utf-8") as f:
        f.write(f"# {title}\n\n")
        f.write(f"_generated: {ts}_\n")
        for heading, body in sections:
            f.write(f"\n## {heading}\n\n")
            f.write(body.strip() + "\n")
    logger.info("Report written to %s", report_path)
    return report_path


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/file.csv", Path("/project"))
    PosixPath('/project/data/file.csv')
    >>> resolve_path("/absolute/path.csv", Path("/project"))
    PosixPath('/absolute/path.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)
