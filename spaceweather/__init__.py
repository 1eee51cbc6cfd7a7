"""Space weather monitor for a single location.

Polls NOAA SWPC feeds, scores local geomagnetic impact and sends
startup, daily and warning notifications by email and SMS.
"""

__version__ = "0.1.0"
