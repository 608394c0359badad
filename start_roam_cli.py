#!/usr/bin/env python3
import os, sys

# ensure project root is on the import path
repo_root = os.path.dirname(os.path.abspath(__file__))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from ssidroam.cli import main

if __name__ == "__main__":
    sys.exit(main())
