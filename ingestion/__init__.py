"""
SkyTrack telemetry ingestion.
"""
