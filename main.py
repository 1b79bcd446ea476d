"""Entrypoint: ``python main.py tests.json -o results.json``.
Same as the ``api-test-runner`` console script; see api_runner/cli.py for options.
"""
import sys

from api_runner.cli import main

if __name__ == "__main__":
    sys.exit(main())
