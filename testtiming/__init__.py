"""testtiming: test timing history from LUCI CI results."""

__version__ = "0.1.0"
