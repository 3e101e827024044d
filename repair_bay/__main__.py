"""Allow ``python -m repair_bay``."""

import sys

from repair_bay.lifecycle import main

if __name__ == "__main__":
    sys.exit(main())
