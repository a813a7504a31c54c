from homeproxy.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
