# Keep the repository root importable when pytest runs from a subdirectory.
import os
import sys

root = os.path.dirname(os.path.abspath(__file__))
if root not in sys.path:
    sys.path.insert(0, root)
