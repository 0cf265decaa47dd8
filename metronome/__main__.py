import sys

from metronome.cli import main

sys.exit(main())
