"""
Package entry point.

Allows running the scraper via:

    python -m simascraper

This simply forwards execution to simascraper.cli.main().
"""

from simascraper.cli import main

if __name__ == "__main__":
    main()
