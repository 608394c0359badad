#!/usr/bin/env python3
import argparse
import logging
import os, sys

# Add repo root to path (so we can import webui packages easily)
repo_root = os.path.dirname(os.path.abspath(__file__))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from webui.server.app import run_server


def main():
    parser = argparse.ArgumentParser(description="Start the roaming status web UI")
    parser.add_argument("--ui-port", "-p", type=int, default=8443, help="UI port (default: 8443)")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    run_server(port=args.ui_port, host=args.host)


if __name__ == "__main__":
    main()
