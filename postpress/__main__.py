"""Entry point for the Postpress CLI.

This module serves as the main entry point when running the postpress
package directly with ``python -m postpress``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
