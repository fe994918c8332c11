"""
Built-in provisioning profiles.

Each profile is the raw (pre-validation) form of a ``provision.yml``
and is validated through ``ProvisionRequest`` exactly like a user file.

    system  full workstation/server setup: base packages, Tailscale,
            firewalld + fail2ban, Docker, NvChad, Oh My Zsh stack
    zsh     shell only: packages, Oh My Zsh, Powerlevel10k, plugins, rc
"""

from __future__ import annotations

from typing import Any

OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
P10K_CONFIG_URL = "https://raw.githubusercontent.com/romkatv/dotfiles-public/master/.purepower"
ZSH_CUSTOM = "{home}/.oh-my-zsh/custom"
ZSHRC = "{home}/.zshrc"

ALIASES_MARKER = "# --- Custom Aliases ---"

FAIL2BAN_SSHD_JAIL = """\
[sshd]
enabled = true
backend = systemd
filter = sshd
maxretry = 2
findtime = 1d
bantime = 1y
"""

DOCKER_APT_REPO = (
    "install -m 0755 -d /etc/apt/keyrings"
    " && curl -fsSL https://download.docker.com/linux/{os_id}/gpg"
    " | gpg --dearmor --yes -o /etc/apt/keyrings/docker.gpg"
    " && chmod a+r /etc/apt/keyrings/docker.gpg"
    ' && echo "deb [arch=$(dpkg --print-architecture) signed-by=/etc/apt/keyrings/docker.gpg]'
    " https://download.docker.com/linux/{os_id}"
    ' $(. /etc/os-release && echo "$VERSION_CODENAME") stable"'
    " > /etc/apt/sources.list.d/docker.list"
)


# ── Shared zsh stack ────────────────────────────────────────────


def _plugin(name: str, url: str) -> dict[str, Any]:
    return {
        "id": f"zsh-plugin-{name}",
        "kind": "DirectoryCloned",
        "url": url,
        "dest": f"{ZSH_CUSTOM}/plugins/{name}",
    }


def _zsh_steps(plugins: list[tuple[str, str]], plugin_line: str, vi_alias: str) -> list[dict[str, Any]]:
    return [
        {
            "id": "oh-my-zsh",
            "kind": "CommandRun",
            "description": "install Oh My Zsh (unattended)",
            "command": f'sh -c "$(curl -fsSL {OH_MY_ZSH_INSTALLER})" "" --unattended',
            "creates": "{home}/.oh-my-zsh",
        },
        {
            "id": "powerlevel10k",
            "kind": "DirectoryCloned",
            "url": "https://github.com/romkatv/powerlevel10k.git",
            "dest": f"{ZSH_CUSTOM}/themes/powerlevel10k",
            "depth": 1,
        },
        {
            "id": "p10k-config",
            "kind": "FileWritten",
            "description": "download the recommended Powerlevel10k config",
            "path": "{home}/.p10k.zsh",
            "source_url": P10K_CONFIG_URL,
            "overwrite": False,
        },
        *(_plugin(name, url) for name, url in plugins),
        {
            "id": "zshrc",
            "kind": "FileWritten",
            "description": "create an empty .zshrc if none exists",
            "path": ZSHRC,
            "content": "",
            "overwrite": False,
        },
        {
            "id": "zshrc-theme",
            "kind": "LinePatched",
            "path": ZSHRC,
            "pattern": r'^ZSH_THEME=".*"$',
            "line": 'ZSH_THEME="powerlevel10k/powerlevel10k"',
        },
        {
            "id": "zshrc-plugins",
            "kind": "LinePatched",
            "path": ZSHRC,
            "pattern": r"^plugins=\(.*$",
            "line": plugin_line,
        },
        {
            "id": "zshrc-p10k-source",
            "kind": "LinePatched",
            "mode": "ensure",
            "path": ZSHRC,
            "probe": "[[ ! -f ~/.p10k.zsh ]] || source ~/.p10k.zsh",
            "lines": [
                "",
                "# To customize prompt, run `p10k configure` or edit ~/.p10k.zsh.",
                "[[ ! -f ~/.p10k.zsh ]] || source ~/.p10k.zsh",
            ],
        },
        {
            "id": "zshrc-aliases",
            "kind": "BlockAppended",
            "path": ZSHRC,
            "marker": ALIASES_MARKER,
            "content": (
                f"alias vi='{vi_alias}'\n"
                "alias sudo='sudo '\n"
                "# alias dig='doggo'\n"
                "# alias p='proxychains4'\n"
                "# alias z='zellij attach || zellij'\n"
            ),
        },
    ]


_ZSH_PLUGINS = [
    ("zsh-autosuggestions", "https://github.com/zsh-users/zsh-autosuggestions"),
    ("zsh-history-substring-search", "https://github.com/zsh-users/zsh-history-substring-search"),
    ("zsh-completions", "https://github.com/zsh-users/zsh-completions"),
    ("zsh-syntax-highlighting", "https://github.com/zsh-users/zsh-syntax-highlighting"),
]


# ── Profiles ────────────────────────────────────────────────────


SYSTEM_PROFILE: dict[str, Any] = {
    "name": "system",
    "description": "Workstation/server setup: packages, VPN, firewall, Docker, editor and shell",
    "steps": [
        {
            "id": "base-packages",
            "kind": "PackagesPresent",
            "packages": [
                "zsh", "git", "htop", "rsync", "wget", "fish", "curl",
                "firewalld", "fail2ban", "neovim", "fzf",
            ],
        },
        # ── Tailscale ──
        {
            "id": "tailscale-package",
            "kind": "PackagesPresent",
            "description": "install Tailscale from the distribution repositories",
            "packages": ["tailscale"],
        },
        {
            "id": "tailscale-script",
            "kind": "CommandRun",
            "description": "install Tailscale with the vendor script",
            "only_on": ["debian"],
            "command": "curl -fsSL https://tailscale.com/install.sh | sh",
            "unless": "command -v tailscale",
            "privileged": True,
        },
        {"id": "tailscaled", "kind": "ServiceEnabled", "service": "tailscaled"},
        # ── Firewall and intrusion prevention ──
        {
            "id": "fail2ban-sshd-jail",
            "kind": "FileWritten",
            "path": "/etc/fail2ban/jail.d/sshd.local",
            "content": FAIL2BAN_SSHD_JAIL,
            "mode": "0644",
            "privileged": True,
        },
        {"id": "firewalld", "kind": "ServiceEnabled", "service": "firewalld"},
        {"id": "fail2ban", "kind": "ServiceEnabled", "service": "fail2ban"},
        {
            "id": "firewalld-trust-tailscale",
            "kind": "CommandRun",
            "description": "add tailscale0 to the firewalld trusted zone",
            "command": (
                "firewall-cmd --permanent --zone=trusted --add-interface=tailscale0"
                " && firewall-cmd --reload"
            ),
            "unless": "firewall-cmd --permanent --zone=trusted --query-interface=tailscale0",
            "privileged": True,
        },
        # ── Docker ──
        {
            "id": "docker-prereqs",
            "kind": "PackagesPresent",
            "only_on": ["debian"],
            "packages": ["ca-certificates", "curl", "gnupg"],
        },
        {
            "id": "docker-apt-repo",
            "kind": "CommandRun",
            "description": "add the Docker apt repository",
            "only_on": ["debian"],
            "command": DOCKER_APT_REPO,
            "creates": "/etc/apt/sources.list.d/docker.list",
            "privileged": True,
        },
        {"id": "docker-packages", "kind": "PackagesPresent", "packages": ["docker"]},
        {"id": "docker", "kind": "ServiceEnabled", "service": "docker"},
        {"id": "docker-group", "kind": "GroupMember", "group": "docker"},
        # ── Neovim ──
        {
            "id": "nvchad",
            "kind": "DirectoryCloned",
            "url": "https://github.com/NvChad/starter",
            "dest": "{home}/.config/nvim",
        },
        {
            "id": "nvchad-sync",
            "kind": "CommandRun",
            "description": "initial headless NvChad plugin sync",
            "command": ["nvim", "--headless", "+Lazy! sync", "+qa"],
            "creates": "{home}/.local/share/nvim/lazy",
        },
        # ── Zsh ──
        *_zsh_steps(
            [*_ZSH_PLUGINS, ("fzf-tab", "https://github.com/Aloxaf/fzf-tab")],
            "plugins=(git zsh-completions zsh-autosuggestions history-substring-search"
            " zsh-syntax-highlighting extract docker sudo fzf fzf-tab)",
            vi_alias="nvim",
        ),
        {
            "id": "zshrc-alias-vi",
            "kind": "LinePatched",
            "description": "alias vi to nvim in an existing aliases block",
            "path": ZSHRC,
            "pattern": r"^alias vi='n?vim'$",
            "line": "alias vi='nvim'",
        },
        {"id": "login-shell", "kind": "LoginShellSet", "shell": "zsh"},
    ],
}

ZSH_PROFILE: dict[str, Any] = {
    "name": "zsh",
    "description": "Zsh with Oh My Zsh, Powerlevel10k and plugins",
    "steps": [
        {
            "id": "zsh-packages",
            "kind": "PackagesPresent",
            "packages": ["zsh", "git", "htop", "rsync", "wget", "fish", "curl"],
        },
        *_zsh_steps(
            _ZSH_PLUGINS,
            "plugins=(git zsh-completions zsh-autosuggestions history-substring-search"
            " zsh-syntax-highlighting extract docker)",
            vi_alias="vim",
        ),
    ],
}

PROFILES: dict[str, dict[str, Any]] = {
    "system": SYSTEM_PROFILE,
    "zsh": ZSH_PROFILE,
}
