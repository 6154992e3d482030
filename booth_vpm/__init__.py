"""
Booth VPM repository.

Converts purchased Booth items (.unitypackage files and the zip archives they
ship in) into a VPM package repository, and serves that repository over HTTP.
"""

__version__ = "0.1.0"
