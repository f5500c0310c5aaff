"""Run the application on Werkzeug's threaded server with graceful shutdown.

``python server.py`` serves until SIGTERM (exit 0) or a fatal uncaught
exception (exit 1). Either way the listening socket is closed first and
requests already in flight are allowed to finish.
"""

import os
import signal
import sys
import threading

from werkzeug.serving import make_server

from app import create_app


class GracefulServer:
    """Own a threaded WSGI server and stop it from any thread or signal."""

    def __init__(self, app, host: str, port: int):
        self.app = app
        self.server = make_server(host, port, app, threaded=True)
        # Join request threads on close instead of killing them.
        self.server.daemon_threads = False
        self.server.block_on_close = True
        self.exit_code = 0
        self._stopping = threading.Event()

    def stop(self, exit_code: int = 0) -> None:
        if self._stopping.is_set():
            return
        self._stopping.set()
        self.exit_code = exit_code
        # shutdown() blocks until serve_forever returns, so never call it on
        # the serving thread itself.
        threading.Thread(target=self.server.shutdown, daemon=True).start()

    def _on_sigterm(self, signum, frame) -> None:
        self.app.logger.info("SIGTERM received. Shutting down gracefully")
        self.stop(0)

    def _on_uncaught(self, exc_type, exc_value, exc_traceback) -> None:
        self.app.logger.critical(
            "UNCAUGHT EXCEPTION! Shutting down...",
            exc_info=(exc_type, exc_value, exc_traceback),
        )
        self.stop(1)

    def _on_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        self._on_uncaught(args.exc_type, args.exc_value, args.exc_traceback)

    def install_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._on_sigterm)
        sys.excepthook = self._on_uncaught
        threading.excepthook = self._on_thread_exception

    def serve(self) -> int:
        host, port = self.server.server_address[:2]
        self.app.logger.info("App running on %s:%s", host, port)
        try:
            self.server.serve_forever()
        finally:
            self.server.server_close()
            self.app.logger.info("Process terminated")
        return self.exit_code


def main() -> int:
    app = create_app()
    server = GracefulServer(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
    )
    server.install_handlers()
    return server.serve()


if __name__ == "__main__":
    sys.exit(main())
