import sys

from modhost.cli import main

sys.exit(main())
