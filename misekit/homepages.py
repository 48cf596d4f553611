"""Derive a homepage URL for a registry entry from its backend identifiers."""

from collections.abc import Callable, Iterable
from functools import lru_cache
from importlib import resources
from typing import Optional

import yaml


@lru_cache(maxsize=1)
def load_core_homepages() -> dict[str, str]:
    """Load the bundled core-runtime homepage map"""
    data_file = resources.files("misekit").joinpath("core_homepages.yaml")
    with data_file.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _github(path: str) -> Optional[str]:
    return f"https://github.com/{path}"


def _asdf(path: str) -> Optional[str]:
    # Only "owner/repo" short forms map cleanly onto GitHub
    if len(path.split("/")) == 2:
        return f"https://github.com/{path}"
    return None


def _core(name: str) -> Optional[str]:
    return load_core_homepages().get(f"core:{name}")


# (prefix, transform) pairs; the transform receives the text after the prefix
URL_RULES: list[tuple[str, Callable[[str], Optional[str]]]] = [
    ("github:", _github),
    ("asdf:mise-plugins/", lambda rest: f"https://github.com/mise-plugins/{rest}"),
    ("asdf:", _asdf),
    ("cargo:", lambda rest: f"https://crates.io/crates/{rest}"),
    ("npm:", lambda rest: f"https://www.npmjs.com/package/{rest}"),
    ("pip:", lambda rest: f"https://pypi.org/project/{rest}"),
    ("go:", lambda rest: f"https://pkg.go.dev/{rest}"),
    ("gem:", lambda rest: f"https://rubygems.org/gems/{rest}"),
    ("core:", _core),
]


def url_for_backend(backend: str) -> Optional[str]:
    """URL for a single backend identifier; the first matching prefix decides"""
    for prefix, transform in URL_RULES:
        if backend.startswith(prefix):
            return transform(backend[len(prefix):])
    return None


def derive_tool_url(backends: Iterable[str]) -> Optional[str]:
    """URL of the first backend that maps to a known homepage"""
    for backend in backends:
        if not isinstance(backend, str):
            continue
        url = url_for_backend(backend)
        if url:
            return url
    return None
