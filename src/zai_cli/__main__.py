"""
Entry point for running Zai CLI as a module.

This allows users to run the CLI using:
    python -m zai_cli [command] [options]
"""

from zai_cli.cli.app import main

if __name__ == "__main__":
    main()
