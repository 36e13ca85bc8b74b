"""CharaVault services."""
