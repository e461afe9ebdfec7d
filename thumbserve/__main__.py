"""
Main entry point for running the package as a module.

Usage:
    python -m thumbserve serve --source-root images --thumbnail-root thumbs
    python -m thumbserve warm --source-root images --thumbnail-root thumbs
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
