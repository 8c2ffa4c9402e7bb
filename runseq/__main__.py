"""Allow ``python -m runseq``."""

from runseq.cli import main

main()
