"""HTTP API for CharaVault."""
