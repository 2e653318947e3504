"""Real-time indexing path: watcher, parser, reconciler, sync monitor."""
