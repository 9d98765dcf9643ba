"""
Kawaii Narrator - reads an AI assistant's terminal output aloud through a
synthesized voice while a VRM avatar follows along with expressions and lip-sync.
"""

__version__ = "1.0.0"
