"""Start the read API (uvicorn, background thread) and the Streamlit dashboard."""
from __future__ import annotations

import subprocess
import sys
import threading
import time
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

DASHBOARD_PATH = Path(__file__).parent / "dashboard.py"


def _wait_for_api(api_port: int, timeout_seconds: float = 10.0) -> bool:
    """Poll /api/repos until the API answers 200 or the timeout expires."""
    deadline = time.time() + timeout_seconds
    url = f"http://localhost:{api_port}/api/repos"
    while time.time() < deadline:
        try:
            with urlopen(url, timeout=1) as response:
                if response.status == 200:
                    return True
        except (URLError, OSError):
            pass
        time.sleep(0.2)
    return False


def _streamlit_command(api_port: int) -> list[str]:
    return [
        sys.executable, "-m", "streamlit", "run",
        str(DASHBOARD_PATH),
        "--server.port", str(api_port + 1),
        "--server.headless", "true",
        "--browser.gatherUsageStats", "false",
        "--", f"--api-url=http://localhost:{api_port}",
    ]


def launch(db_path: str | None = None, api_port: int = 8000, host: str = "127.0.0.1") -> None:
    import uvicorn

    from git_density.web.api import app

    app.state.db_path = db_path

    api_thread = threading.Thread(
        target=uvicorn.run,
        kwargs={"app": app, "host": host, "port": api_port, "log_level": "warning"},
        daemon=True,
    )
    api_thread.start()

    if not _wait_for_api(api_port):
        print(f"Failed to start API server on http://localhost:{api_port}", file=sys.stderr)
        sys.exit(1)

    print(f"API server:  http://localhost:{api_port}")
    print(f"Dashboard:   http://localhost:{api_port + 1}")
    print()

    try:
        proc = subprocess.run(_streamlit_command(api_port), check=False)
        sys.exit(proc.returncode)
    except KeyboardInterrupt:
        print("\nShutting down.")
        sys.exit(0)
