import sys

from devtools_throttle.cli import main

sys.exit(main())
