"""SlipSafe receipt API."""
