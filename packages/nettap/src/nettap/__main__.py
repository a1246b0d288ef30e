import sys

from nettap.cli import main

sys.exit(main())
