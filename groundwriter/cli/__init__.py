"""Command-line tools for groundwriter (``python -m groundwriter.cli``)."""
