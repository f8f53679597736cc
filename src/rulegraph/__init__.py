"""rulegraph: rule manifest routing and validation engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("rulegraph")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
