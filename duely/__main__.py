"""Allow `python -m duely`."""

from .cli.main import main

main()
