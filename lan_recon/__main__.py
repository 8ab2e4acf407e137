"""
Entry point for running lan_recon as a module.

This allows the package to be executed with: python -m lan_recon
"""

from .main import main

if __name__ == "__main__":
    exit(main())
