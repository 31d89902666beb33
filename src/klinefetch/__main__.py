import sys

from klinefetch.cli import main

sys.exit(main())
