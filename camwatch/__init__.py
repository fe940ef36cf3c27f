"""
camwatch: periodic maintenance of geotagged camera/hazard reports.

One pass ages every report through its time-to-live lifecycle and promotes
spatial-temporal clusters of recent mobile sightings to hotspots.
"""

__version__ = "1.0.0"
