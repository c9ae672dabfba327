"""Entry point for python -m searchsync."""

from searchsync.cli import main

if __name__ == "__main__":
    main()
