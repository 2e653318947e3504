"""Channel fan-out to realtime observers."""
