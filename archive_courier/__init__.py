"""Archive Courier — one-shot archive-to-upload relay.

Picks the newest archive out of a downloads folder, parks it in a
backup folder, extracts it, and hands the payload file inside over to
an upload folder under a configured name.
"""

__version__ = "1.0.0"
__app_name__ = "Archive Courier"
