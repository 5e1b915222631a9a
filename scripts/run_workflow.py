"""
Run the georeferencing workflow from a source checkout.

Same flags as the ``earth-align`` console script; see ``--help``.
"""

import sys
from pathlib import Path

# Add the src to the path to import modules
sys.path.append(str(Path(__file__).parent.parent / "src"))

from earth_alignment.cli import main


if __name__ == "__main__":
    sys.exit(main())
