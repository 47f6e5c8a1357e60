"""
Upstream data sources: the airplanes.live feed, the route, registry,
photo and facts lookups, and Mapbox map snapshots. All clients share one
aiohttp session.
"""
