import sys

from httpwatch.main import main

sys.exit(main())
