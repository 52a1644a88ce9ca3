"""Git clone client, progress reporter and fetch orchestration."""
