"""Emberfall — dev launcher. Starts the backend in watch mode."""

import argparse
import os
import subprocess
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Emberfall dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Write a demo save for the 'demo' user")
    args = parser.parse_args()

    data_dir = (args.data_dir or ROOT / "data").resolve()
    if args.demo:
        from backend.demo import create_demo_data
        from emberfall.storage import FileProgressStore
        create_demo_data(FileProgressStore(data_dir))
        print(f"Demo save written to {data_dir / 'progress'}")

    # Subprocess picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
