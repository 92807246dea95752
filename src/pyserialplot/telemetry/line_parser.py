import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from loguru import logger

# Reserved key carrying the channel id; never reported as metadata
RESERVED_CHANNEL_KEY = "CH"

_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"

_CHANNEL_RE = re.compile(r"(?:^|,)\s*CH\s*:\s*([+-]?\d+)\s*(?=,|$)", re.IGNORECASE)
_BRACKET_POINT_RE = re.compile(rf"\[\s*({_NUMBER})\s*,\s*({_NUMBER})\s*\]")
_LEADING_POINT_RE = re.compile(rf"^\s*({_NUMBER})\s*,\s*({_NUMBER})\s*")


@dataclass
class ParsedLine:
    """
    Structured content of one telemetry line.

    Every field is optional; a line without recognisable tokens produces a
    record with both flags False and an empty ``kv`` mapping.
    """

    has_channel: bool = False
    channel: int = -1
    has_point: bool = False
    point: Tuple[float, float] = (0.0, 0.0)
    kv: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """True if the line carried no channel, point or metadata."""
        return not (self.has_channel or self.has_point or self.kv)


def _parse_double(text: str) -> Optional[float]:
    try:
        return float(text.strip())
    except ValueError:
        return None


def _match_point(
    pattern: re.Pattern, text: str
) -> Optional[Tuple[Tuple[float, float], int, int]]:
    """Return ((x, y), start, end) for the first match of ``pattern``, if it parses."""
    m = pattern.search(text)
    if m is None:
        return None
    x = _parse_double(m.group(1))
    y = _parse_double(m.group(2))
    if x is None or y is None:
        return None
    return (x, y), m.start(0), m.end(0)


def parse_line(line: str) -> ParsedLine:
    """
    Parse one raw telemetry line.

    Recognised tokens, in order of precedence:

    1. ``CH:<int>`` anywhere in the line, delimited by line start or a comma on
       the left and a comma or line end on the right (key is case-insensitive).
    2. A point: ``[x,y]`` anywhere in the line, otherwise a leading ``x,y``.
       The bracketed form always wins when both are present.
    3. ``key:value`` fragments in the comma-separated remainder of the line,
       with the point substring removed.

    Parameters
    ----------
    line : str
        One complete line without its terminator.

    Returns
    -------
    ParsedLine
        The parsed record. Parsing never fails; missing tokens simply leave
        the corresponding flags unset.
    """
    result = ParsedLine()
    s = line.strip()
    if not s:
        return result

    m = _CHANNEL_RE.search(s)
    if m is not None:
        result.has_channel = True
        result.channel = int(m.group(1))

    found = _match_point(_BRACKET_POINT_RE, s)
    if found is None:
        found = _match_point(_LEADING_POINT_RE, s)

    rest = s
    if found is not None:
        result.has_point = True
        result.point, start, end = found
        rest = s[:start] + s[end:]

    rest = rest.strip().lstrip(",").strip()
    for fragment in rest.split(","):
        fragment = fragment.strip()
        colon = fragment.find(":")
        if colon <= 0:
            continue
        key = fragment[:colon].strip()
        value = fragment[colon + 1 :].strip()
        if not key or key.upper() == RESERVED_CHANNEL_KEY:
            continue
        result.kv[key] = value

    if result.is_empty:
        logger.debug(f"No recognisable tokens in line: {line!r}")
    return result
