"""ASGI server layer: dispatch, response senders, SSE driver, dev server."""
