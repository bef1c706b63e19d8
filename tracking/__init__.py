"""
SkyTrack flight position and progress estimation engine.
"""
