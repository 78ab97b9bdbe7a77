"""API clients for talking to MPD over its text protocol."""
