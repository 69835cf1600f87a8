# src/dotconverge/config/settings.py


from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple
import os

# Packages the bootstrap needs before it can clone and converge.
BASELINE_PACKAGES: Dict[str, Tuple[str, ...]] = {
    "arch": ("git", "curl", "sudo", "openssh", "python"),
    "debian": ("git", "curl", "sudo", "openssh-client", "python3"),
}


@dataclass(frozen=True)
class BootstrapSettings:
    repo_url: Optional[str]
    repo_dir: Path
    log_file: Path
    marker_file: Path
    playbook: str = "site.yml"
    baseline_packages: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(BASELINE_PACKAGES)
    )

    @property
    def playbook_path(self) -> Path:
        return self.repo_dir / self.playbook


def load_bootstrap_settings(home: Optional[Path] = None) -> BootstrapSettings:
    # home-relative defaults; override via env
    home = home or Path.home()
    return BootstrapSettings(
        repo_url=os.getenv("DOTFILES_REPO"),
        repo_dir=Path(os.getenv("DOTFILES_DIR", str(home / ".dotfiles"))).expanduser(),
        log_file=Path(os.getenv("DOTFILES_LOG", str(home / ".dotfiles.log"))).expanduser(),
        marker_file=Path(os.getenv("DOTFILES_MARKER", str(home / ".dotfiles_run"))).expanduser(),
        playbook=os.getenv("DOTFILES_PLAYBOOK", "site.yml"),
    )
