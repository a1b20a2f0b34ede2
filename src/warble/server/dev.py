"""Development server.

Starts a pounce ASGI server with the live warble App object.
"""

from __future__ import annotations

from warble.errors import ConfigurationError


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    app_path: str | None = None,
) -> None:
    """Start a single-worker pounce server for *app*.

    Pounce's ``run()`` takes an import string (e.g. ``"myapp:app"``),
    but warble has a live ``App`` object, so ``pounce.Server`` is used
    directly with the ASGI callable. *app_path* lets pounce re-import
    the app on reload.
    """
    try:
        from pounce.config import ServerConfig
        from pounce.server import Server
    except ImportError as exc:
        raise ConfigurationError(
            "App.run() requires the 'pounce' server. Install it with: pip install warble[server]"
        ) from exc

    config = ServerConfig(host=host, port=port, workers=1, reload=reload)
    server = Server(config, app, app_path=app_path)
    server.run()
