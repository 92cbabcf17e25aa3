"""RampTrack: fleet telemetry caching and gate occupancy backend."""
