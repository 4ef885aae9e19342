"""Storage, reporting and notification services used by the API."""
