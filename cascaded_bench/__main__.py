import sys

from cascaded_bench.cli import main

sys.exit(main())
