"""Render the reference development box as a Dockerfile."""

from devimage.compiler import emit_dockerfile
from devimage.profiles.devbox import devbox_recipe


def write_devbox_dockerfile() -> None:
    recipe = devbox_recipe(base="ubuntu:24.04")
    recipe.label("org.opencontainers.image.title", "devbox")
    emit_dockerfile(recipe, "build/devbox/Dockerfile")


if __name__ == "__main__":
    write_devbox_dockerfile()
