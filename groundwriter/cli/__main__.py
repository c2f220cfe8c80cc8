"""Allow ``python -m groundwriter.cli`` execution."""

from groundwriter.cli.ingest import main

main()
