"""Release tooling for pilets: build, pack and publish to a feed service."""

__version__ = "0.3.0"
