"""
Seed Phrase Engine

Expands a seed phrase into a session of candidate phrases and scores them:
1. Harvests autocomplete suggestions in phases (top10, az, prefix, child)
2. Tags every phrase against the top10 anchors
3. Scores session-relative demand and content opportunity
4. Persists sessions, phrases and scores
"""

__version__ = "1.0.0"
