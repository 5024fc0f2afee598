"""Allow `python -m dropsync`."""

from dropsync.interface.cli import main

raise SystemExit(main())
