"""`python -m cli.commands` runs the sheettrans CLI."""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from cli.commands.main import cli

if __name__ == "__main__":
    cli()
