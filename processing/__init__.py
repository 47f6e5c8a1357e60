"""
Tracker core: geometry, enrichment, proximity decisions, sighting log and stats.
"""
