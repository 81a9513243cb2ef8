"""
Domain models for the talent pipeline.

Submodules:
  query   — ``QueryParameters`` (per-request leaderboard filter)
  talent  — ``TalentRecord``, ``ErrorRecord`` and the placeholder sentinels
"""
