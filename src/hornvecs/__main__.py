"""Allow ``python -m hornvecs``."""

import sys

from hornvecs.cli import main

if __name__ == "__main__":
    sys.exit(main())
