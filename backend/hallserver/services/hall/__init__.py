"""Hall services: sessions, announcements, login relay and leaderboards.

Socket handlers and HTTP routes call into these through the single
``HallModule`` stored on ``app.extensions['hall']``.
"""
