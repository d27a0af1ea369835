# ldeaths_forecaster_src/parsing_utils.py

import argparse
from typing import List, Optional
import logging

from .search_utils import CRITERIA, SEARCH_MODES, SearchBounds

logger = logging.getLogger(__name__)


def parse_intervals_arg(s: Optional[str], default: str = "80,95") -> List[int]:
    """
    Parse a CLI intervals argument like '80,95' into sorted unique integer coverage levels.

    Parameters
    ----------
    s : str, optional
        CLI intervals argument (e.g., "80,95" or "90")
    default : str, default="80,95"
        Default intervals when ``s`` is empty

    Returns
    -------
    List[int]
        Sorted list of unique coverage levels between 1 and 99

    Raises
    ------
    ValueError
        If a level is not an integer or lies outside 1-99

    Examples
    --------
    >>> parse_intervals_arg("80,95")
    [80, 95]
    >>> parse_intervals_arg("95, 80, 80")
    [80, 95]
    """
    if isinstance(s, (list, tuple)):
        txt = ",".join(str(x) for x in s)
    else:
        txt = (s or default).strip()
    try:
        vals = sorted({int(x.strip()) for x in txt.split(",") if x.strip() != ""})
    except ValueError as e:
        raise ValueError(f"Invalid intervals '{txt}': expected comma-separated integers") from e
    bad = [v for v in vals if not 1 <= v < 100]
    if bad or not vals:
        raise ValueError(f"Invalid intervals '{txt}': levels must lie in 1-99")
    return vals


def resolve_search_bounds(args: Optional[argparse.Namespace] = None) -> SearchBounds:
    """
    Order-search bounds with CLI > config > default precedence.

    Examples
    --------
    >>> resolve_search_bounds().max_P
    2
    """
    from .config_utils import get_config_value

    def _get(name: str, default: int) -> int:
        return int(get_config_value(f"model.search_space.{name}", default, args, name))

    return SearchBounds(
        max_p=_get("max_p", 5),
        max_q=_get("max_q", 5),
        max_P=_get("max_P", 2),
        max_Q=_get("max_Q", 2),
        max_order=_get("max_order", 5),
    )


def validate_search_mode(mode: str) -> List[str]:
    """
    Expand a --mode value into the list of searches to run.

    Raises
    ------
    ValueError
        If the mode is not 'both', 'exhaustive' or 'stepwise'

    Examples
    --------
    >>> validate_search_mode("both")
    ['exhaustive', 'stepwise']
    """
    m = (mode or "").lower()
    if m == "both":
        return list(SEARCH_MODES)
    if m not in SEARCH_MODES:
        raise ValueError(f"Invalid search mode '{mode}'. Must be one of: {['both', *SEARCH_MODES]}")
    return [m]


def validate_criterion(criterion: str) -> str:
    """Normalise an information-criterion name ('AIC' -> 'aic')."""
    c = (criterion or "").lower()
    if c not in CRITERIA:
        raise ValueError(f"Invalid criterion '{criterion}'. Must be one of: {list(CRITERIA)}")
    return c


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize a logging level name.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
