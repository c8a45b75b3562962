"""Main entry point when executing tallymcp as a package.

This allows running the package using python -m tallymcp.
"""

from tallymcp.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
