"""nsxdrift: NSX Manager configuration export with git history."""

__version__ = "0.1.0"
