import difflib
import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)

_ws_run = re.compile(r"\s+")


def _read_lines(path: str) -> List[str]:
    # a missing side counts as empty, like `diff -N`
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return fh.readlines()
    except FileNotFoundError:
        return []


def _normalize(line: str) -> str:
    # ignore changes in the amount of white space, like `diff -b`
    return _ws_run.sub(" ", line.rstrip())


def compute_diff(canonical: str, shadow: str) -> Optional[str]:
    """
    Render the pending changes of `shadow` against `canonical` as a unified diff.

    Returns None when the two files do not differ.
    """
    old = _read_lines(canonical)
    new = _read_lines(shadow)

    if [_normalize(line) for line in old] == [_normalize(line) for line in new]:
        return None

    diff = "".join(
        line if line.endswith("\n") else f"{line}\n"
        for line in difflib.unified_diff(old, new, fromfile=canonical, tofile=shadow)
    )
    logger.debug(f"Computed diff between '{canonical}' and '{shadow}' ({len(diff)} bytes)")
    return diff or None
