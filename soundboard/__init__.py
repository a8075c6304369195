"""
Soundboard Web

Web-controlled Discord voice soundboard.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""
