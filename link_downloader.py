#!/usr/bin/env python3
import sys

from linkdl_components.cli import main


if __name__ == "__main__":
    sys.exit(main())
