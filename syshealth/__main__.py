import sys

from syshealth.main import main

sys.exit(main())
