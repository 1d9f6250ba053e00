"""Resource quantity parsing: CPU in cores, memory in GiB"""

import re
from typing import Union

Quantity = Union[str, int, float, None]

_NUMBER = re.compile(r'^([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([a-zA-Z]*)$')

# Factors converting each memory suffix to GiB
_MEMORY_FACTORS = {
    'ki': 1.0 / (1024 * 1024),
    'mi': 1.0 / 1024,
    'gi': 1.0,
    'ti': 1024.0,
    'pi': 1024.0 * 1024,
    'k': 1e3 / 1024 ** 3,
    'm': 1e6 / 1024 ** 3,
    'g': 1e9 / 1024 ** 3,
    't': 1e12 / 1024 ** 3,
    '': 1.0,  # bare numbers are already GiB
}


def _split(value: str):
    match = _NUMBER.match(value.strip())
    if not match:
        return None
    return float(match.group(1)), match.group(2).lower()


def parse_cpu(value: Quantity) -> float:
    """Parse a CPU quantity ("250m", "2", "1.5cpu") into cores.

    Returns 0.0 for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else 0.0

    parts = _split(str(value))
    if parts is None:
        return 0.0
    number, suffix = parts
    if suffix.endswith('cpu'):
        suffix = suffix[:-3]
    if suffix == 'm':
        return number / 1000.0
    if suffix == '':
        return number
    return 0.0


def parse_memory(value: Quantity) -> float:
    """Parse a memory quantity into GiB.

    Binary suffixes (Ki, Mi, Gi, Ti) and decimal ones (k, M, G, T) are
    accepted in any case; a trailing "B" is ignored. Returns 0.0 for
    anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else 0.0

    parts = _split(str(value))
    if parts is None:
        return 0.0
    number, suffix = parts
    if suffix.endswith('b') and suffix != 'b':
        suffix = suffix[:-1]
    factor = _MEMORY_FACTORS.get(suffix)
    if factor is None:
        return 0.0
    return number * factor


def format_memory(gib: float) -> str:
    if gib < 1:
        return f"{gib * 1024:.0f}Mi"
    return f"{gib:.1f}Gi".replace(".0Gi", "Gi")


def format_cpu(cores: float) -> str:
    if 0 < cores < 1:
        return f"{cores * 1000:.0f}m"
    return f"{cores:g}"
