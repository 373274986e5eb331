"""extpack: release packaging for a self-hosted browser extension.

Version bumps, signing-key lifecycle, signed package and archive builds,
and update descriptor publishing.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def __getattr__(name: str):
    if name == "__version__":
        try:
            return version("extpack")
        except PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)
