"""Server - persistent store, scheduler, service facade and REST API."""
