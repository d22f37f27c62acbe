"""
Community Noticeboard: a realtime bulletin board client.

Four categories (announcements, events, lost & found, feedback) mirrored
live from a document store, with an admin mode for posting, editing and
deleting entries.
"""
