"""Allow running as ``python -m wholesale_server``."""

from .cli import main

main()
