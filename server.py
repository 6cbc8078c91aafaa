import argparse
import threading
import webbrowser

import uvicorn

from appcollection.config import load_settings


def open_browser_once(url: str):
    print(f"[server] Opening {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        print(f"[server] Could not open a browser: {e}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the Apps Collection API server.")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument("--open", action="store_true", help="open the dashboard in a browser")
    args = parser.parse_args(argv)

    settings = load_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    if args.open:
        # give uvicorn a moment to boot before opening the browser
        threading.Timer(1.0, open_browser_once, args=(f"http://{host}:{port}/",)).start()

    print(f"[server] Server running at http://{host}:{port}")
    uvicorn.run(
        "appcollection.main:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
