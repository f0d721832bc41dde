import sys

from notifyworker.cli import main

sys.exit(main())
