"""Allow ``python -m dnsabuse``."""

import sys

from dnsabuse.cli import main

sys.exit(main())
