"""HTTP and realtime routers."""
