import sys

from rent_billing.cli import main

sys.exit(main())
