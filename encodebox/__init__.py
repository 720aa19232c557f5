from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("encodebox")
except PackageNotFoundError:
    __version__ = "???"
