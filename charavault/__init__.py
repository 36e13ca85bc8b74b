"""CharaVault - character card library and metadata service."""

__version__ = "0.1.0"
