"""
Asset Redux

Lets independently built plugins override named runtime assets (sprites,
textures, text resources and bundled records) with exactly one winning
replacement per name.
"""

__version__ = "1.0.0"

# Plugins declaring a different target_version in their manifest are rejected.
TARGET_VERSION = "1.0.0"

__all__ = ["__version__", "TARGET_VERSION"]
