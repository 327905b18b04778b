"""API module for formguard."""
