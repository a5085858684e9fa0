"""Peer telemetry pipeline.

Events flow enrich -> geolocate -> log.append on the engine's threads;
the scheduler thread rotates the log through publish.run_cycle. The log's
lock is the only shared state between the two.
"""
