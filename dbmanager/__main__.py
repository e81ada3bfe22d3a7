import sys

from dbmanager.cli import main

sys.exit(main())
