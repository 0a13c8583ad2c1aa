import sys

from sdlc_eval.cli import main

sys.exit(main())
