"""
Logical package name → native package names, per family.

Names diverge across package managers, so the mapping is explicit.
An empty list means the family gets the software some other way (an
install script or a vendor repository step), and the planner emits no
package install for it there.
"""

from __future__ import annotations

PACKAGE_MAP: dict[str, dict[str, list[str]]] = {
    # ── Shells and core tools ───────────────────────────────────
    "zsh": {"debian": ["zsh"], "suse": ["zsh"], "arch": ["zsh"], "fedora": ["zsh"]},
    "fish": {"debian": ["fish"], "suse": ["fish"], "arch": ["fish"], "fedora": ["fish"]},
    "git": {"debian": ["git"], "suse": ["git"], "arch": ["git"], "fedora": ["git"]},
    "curl": {"debian": ["curl"], "suse": ["curl"], "arch": ["curl"], "fedora": ["curl"]},
    "wget": {"debian": ["wget"], "suse": ["wget"], "arch": ["wget"], "fedora": ["wget"]},
    "rsync": {"debian": ["rsync"], "suse": ["rsync"], "arch": ["rsync"], "fedora": ["rsync"]},
    "htop": {"debian": ["htop"], "suse": ["htop"], "arch": ["htop"], "fedora": ["htop"]},
    "fzf": {"debian": ["fzf"], "suse": ["fzf"], "arch": ["fzf"], "fedora": ["fzf"]},
    "neovim": {"debian": ["neovim"], "suse": ["neovim"], "arch": ["neovim"], "fedora": ["neovim"]},
    "fd": {"debian": ["fd-find"], "suse": ["fd"], "arch": ["fd"], "fedora": ["fd-find"]},
    "ripgrep": {
        "debian": ["ripgrep"], "suse": ["ripgrep"], "arch": ["ripgrep"], "fedora": ["ripgrep"],
    },
    "python3": {
        "debian": ["python3"], "suse": ["python3"], "arch": ["python"], "fedora": ["python3"],
    },

    # ── Security ────────────────────────────────────────────────
    "firewalld": {
        "debian": ["firewalld"], "suse": ["firewalld"], "arch": ["firewalld"],
        "fedora": ["firewalld"],
    },
    "fail2ban": {
        "debian": ["fail2ban"], "suse": ["fail2ban"], "arch": ["fail2ban"],
        "fedora": ["fail2ban"],
    },
    "ca-certificates": {
        "debian": ["ca-certificates"], "suse": ["ca-certificates"],
        "arch": ["ca-certificates"], "fedora": ["ca-certificates"],
    },
    "gnupg": {"debian": ["gnupg"], "suse": ["gpg2"], "arch": ["gnupg"], "fedora": ["gnupg2"]},

    # ── VPN ─────────────────────────────────────────────────────
    # Debian-family hosts get Tailscale from the vendor install script.
    "tailscale": {"debian": [], "suse": ["tailscale"], "arch": ["tailscale"], "fedora": ["tailscale"]},

    # ── Containers ──────────────────────────────────────────────
    "docker": {
        "debian": [
            "docker-ce",
            "docker-ce-cli",
            "containerd.io",
            "docker-buildx-plugin",
            "docker-compose-plugin",
        ],
        "suse": ["docker", "docker-compose"],
        "arch": ["docker", "docker-compose"],
        "fedora": ["moby-engine", "docker-compose"],
    },
}
