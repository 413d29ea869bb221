"""Allow ``python -m dualver``."""

from dualver.cli import main

if __name__ == "__main__":
    main()
