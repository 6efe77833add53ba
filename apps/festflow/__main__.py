"""
Convenience entrypoint to run FestFlow with uvicorn.

Example:
  python -m apps.festflow --reload
"""
import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the FestFlow API server.")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (dev only).")
    args = parser.parse_args()

    reload = args.reload or os.getenv("FESTFLOW_RELOAD", "false").lower() == "true"
    host = os.getenv("FESTFLOW_HOST", "0.0.0.0")
    port = int(os.getenv("FESTFLOW_PORT", "3001"))
    uvicorn.run(
        "apps.festflow.app.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["apps", "libs"] if reload else None,
    )


if __name__ == "__main__":
    main()
