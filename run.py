from __future__ import annotations

import os

from pastebin import create_app
from pastebin.db import dispose_db
from pastebin.worker import stop_expiry_worker


def main() -> None:
    env = os.getenv("APP_ENV", "development")
    app = create_app(env)

    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", "3001"))

    try:
        app.run(host=host, port=port)
    finally:
        stop_expiry_worker()
        dispose_db()


if __name__ == "__main__":
    main()
