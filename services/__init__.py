"""Runtime services: scheduler, hot-patch cache and write-behind queue."""
