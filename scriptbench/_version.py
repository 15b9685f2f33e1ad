"""Version information for scriptbench."""

__version__ = "0.1.0.0"
__author__ = "scriptbench maintainers"
__email__ = "scriptbench@users.noreply.github.com"
