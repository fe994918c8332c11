"""
OS identifier → package family table.

Keys are the ``ID`` field of /etc/os-release. An identifier missing
from this table is an unsupported platform; there is no guessing from
``ID_LIKE``.
"""

from __future__ import annotations

KNOWN_FAMILIES: tuple[str, ...] = ("debian", "suse", "arch", "fedora")

OS_FAMILIES: dict[str, str] = {
    # ── Debian family (apt) ─────────────────────────────────────
    "debian": "debian",
    "ubuntu": "debian",
    "pop": "debian",
    "linuxmint": "debian",
    "raspbian": "debian",
    # ── openSUSE (zypper) ───────────────────────────────────────
    "opensuse-tumbleweed": "suse",
    "opensuse-leap": "suse",
    "opensuse": "suse",
    # ── Arch (pacman) ───────────────────────────────────────────
    "arch": "arch",
    # ── Fedora (dnf) ────────────────────────────────────────────
    "fedora": "fedora",
}
