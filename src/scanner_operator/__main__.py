"""Allow running with ``python -m scanner_operator``."""

from scanner_operator.cli import main

main()
