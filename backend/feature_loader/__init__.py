__all__ = ["__version__"]

# The running build's version gates the persisted resource cache, so it comes
# from installed distribution metadata when available and falls back to a
# local dev version string for bare source checkouts.
from importlib.metadata import version, PackageNotFoundError

try:
	__version__ = version("feature-loader")
except PackageNotFoundError:
	__version__ = "0.0.0+local"
