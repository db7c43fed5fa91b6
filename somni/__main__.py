"""Package entry point for ``python -m somni``.

RULES:
- ``serve`` as the first argument starts the HTTP API with uvicorn
- Anything else falls through to the CLI
"""

import sys

if __name__ == "__main__":
    if sys.argv[1:2] == ["serve"]:
        from somni.server.app import run_api
        run_api()
    else:
        from somni.cli import main
        main()
