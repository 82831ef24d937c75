"""WinTweaks - tweak status checking and batch execution engine"""

__version__ = "1.0.0"
