"""Allow ``python -m tradecharts <command>``."""

from tradecharts.cli import main

main()
