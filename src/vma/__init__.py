"""VMA (Voice Music Auditor)

Core package for auditing a folder of audio files by voice: each file is
played back and the operator says "accept", "delete" or "skip".
"""

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml
__version__ = "0.1.0"
