"""Reference development box profile.

Declares the general-purpose shell environment: common utilities and language
runtimes from the distribution, a rustup-managed Rust toolchain, and the
static ``ffsend`` and ``prs`` release binaries.
"""

from __future__ import annotations

from devimage.recipe import Recipe

DEVBOX_MAINTAINER = "Tim Visee <3a4fb3964f@sinenomine.email>"

DEVBOX_ENVIRONMENT: dict[str, str] = {
    "RUSTUP_HOME": "/usr/local/rustup",
    "CARGO_HOME": "/usr/local/cargo",
    "PATH": "/usr/local/cargo/bin:/usr/games:$PATH",
    "DEBIAN_FRONTEND": "noninteractive",
}

DEVBOX_PACKAGES: tuple[str, ...] = (
    "build-essential",
    "ca-certificates",
    "cmake",
    "cowsay",
    "curl",
    "dnsutils",
    "fortune",
    "git",
    "gnupg",
    "libgpgme11",
    "golang",
    "iputils-ping",
    "iputils-tracepath",
    "libssl-dev",
    "nodejs",
    "openssl",
    "php",
    "pkg-config",
    "python",
    "python3",
    "ruby-full",
    "sudo",
    "toilet",
    "translate-shell",
    "vim",
    "wget",
)

RUSTUP_INSTALLER_URL = "https://sh.rustup.rs"
RUST_CHANNEL = "stable"
CARGO_BIN_DIR = "/usr/local/cargo/bin"

DEVBOX_ARTIFACTS: tuple[tuple[str, str], ...] = (
    (
        "https://github.com/timvisee/ffsend/releases/download/v0.2.72/ffsend-v0.2.72-linux-x64-static",
        "/usr/bin/ffsend",
    ),
    (
        "https://github.com/timvisee/prs/releases/download/v0.2.11/prs-v0.2.11-linux-x64-static",
        "/usr/bin/prs",
    ),
)

DEVBOX_SHELL: tuple[str, ...] = ("/bin/bash",)


def apply_devbox_profile(recipe: Recipe) -> Recipe:
    """Declare the reference development box on *recipe* and return it.

    The package cache is cleaned at the end with the index kept resolvable,
    so ``apt-get install`` keeps working inside containers started from the image.
    """
    recipe.label("maintainer", DEVBOX_MAINTAINER)
    recipe.envs(DEVBOX_ENVIRONMENT)

    recipe.update().upgrade().install(*DEVBOX_PACKAGES)

    # PATH already lists the cargo bin dir, so bin_dir is left unset.
    recipe.toolchain(RUSTUP_INSTALLER_URL, channel=RUST_CHANNEL)
    for url, destination in DEVBOX_ARTIFACTS:
        recipe.fetch(url, destination, mode="a+x")

    recipe.clean()
    return recipe.command(*DEVBOX_SHELL)


def devbox_recipe(*, base: str = "ubuntu") -> Recipe:
    return apply_devbox_profile(Recipe(base=base))
