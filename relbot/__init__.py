"""relbot: cut a release, then wait until it lands."""

__version__ = "0.4.0"
