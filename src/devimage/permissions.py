"""Octal and symbolic chmod mode handling for fetched artifacts."""

from __future__ import annotations

import re
import stat

from devimage.errors import ValidationError

OCTAL_PATTERN = re.compile(r"^0?[0-7]{3,4}$")
CLAUSE_PATTERN = re.compile(r"^([ugoa]*)([+\-=])([rwxX]*)$")

_WHO_MASKS: dict[str, int] = {
    "u": stat.S_IRWXU | stat.S_ISUID,
    "g": stat.S_IRWXG | stat.S_ISGID,
    "o": stat.S_IRWXO,
}
_PERM_BITS: dict[str, int] = {
    "r": stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH,
    "w": stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH,
    "x": stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
}
_ANY_EXECUTE = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def parse_mode(mode: str) -> list[tuple[str, str, str]] | int:
    """Return an absolute octal mode, or the parsed symbolic clauses."""
    if not mode:
        raise ValidationError("File mode must be non-empty.")
    if OCTAL_PATTERN.fullmatch(mode):
        return int(mode, 8)
    clauses: list[tuple[str, str, str]] = []
    for raw in mode.split(","):
        match = CLAUSE_PATTERN.fullmatch(raw)
        if match is None:
            raise ValidationError(
                "Unsupported file mode.",
                hint="Use an octal mode such as '0755' or a chmod clause such as 'a+x'.",
                context={"mode": mode, "clause": raw},
            )
        who, op, perms = match.groups()
        clauses.append((who or "a", op, perms))
    return clauses


def apply_mode(current: int, mode: str) -> int:
    """Compute the permission bits that result from applying *mode* to *current*."""
    parsed = parse_mode(mode)
    if isinstance(parsed, int):
        return parsed
    result = stat.S_IMODE(current)
    for who, op, perms in parsed:
        mask = 0
        for letter in "ugo" if "a" in who else who:
            mask |= _WHO_MASKS[letter]
        bits = 0
        for perm in perms:
            if perm == "X":
                # Directory-or-already-executable rule; fetched artifacts are plain files.
                if is_executable(result):
                    bits |= _PERM_BITS["x"]
            else:
                bits |= _PERM_BITS[perm]
        bits &= mask
        if op == "+":
            result |= bits
        elif op == "-":
            result &= ~bits
        else:
            result = (result & ~(mask & 0o777)) | bits
    return result


def is_executable(mode: int) -> bool:
    return bool(mode & _ANY_EXECUTE)


__all__ = ["apply_mode", "is_executable", "parse_mode"]
