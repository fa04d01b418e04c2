from __future__ import annotations

import stat
from dataclasses import dataclass

from .errors import InvalidSpecError

# Spec position -> mode bit, owner/group/other x read/write/execute.
PERM_BITS: tuple[int, ...] = (
    stat.S_IRUSR,
    stat.S_IWUSR,
    stat.S_IXUSR,
    stat.S_IRGRP,
    stat.S_IWGRP,
    stat.S_IXGRP,
    stat.S_IROTH,
    stat.S_IWOTH,
    stat.S_IXOTH,
)
PERM_MASK = 0o777
_LETTERS = "rwx"
_PLACEHOLDER = "-"


@dataclass(frozen=True)
class PermissionSpec:
    """A compiled 9-character permission pattern such as ``rwxr-xr--``.

    ``required`` holds the permission bits that must be set; every other bit
    under ``PERM_MASK`` must be clear for a mode to match.
    """

    text: str
    required: int

    def matches(self, mode: int) -> bool:
        return (mode & PERM_MASK) == self.required

    def __str__(self) -> str:
        return self.text


def is_valid_permissions(text: str | None) -> bool:
    if text is None or len(text) != len(PERM_BITS):
        return False
    return all(ch in (_PLACEHOLDER, _LETTERS[i % 3]) for i, ch in enumerate(text))


def parse_permissions(text: str) -> PermissionSpec:
    if not is_valid_permissions(text):
        raise InvalidSpecError(text)

    required = 0
    for ch, bit in zip(text, PERM_BITS):
        if ch != _PLACEHOLDER:
            required |= bit
    return PermissionSpec(text=text, required=required)


def format_permissions(mode: int) -> str:
    """Render the nine permission bits of ``mode`` in pattern form."""
    return "".join(
        _LETTERS[i % 3] if mode & bit else _PLACEHOLDER for i, bit in enumerate(PERM_BITS)
    )
