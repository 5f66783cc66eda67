import sys

from portlease.cli import main

sys.exit(main())
