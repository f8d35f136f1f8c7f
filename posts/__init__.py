"""posts/ -- Geotagged posts: domain dataclasses, Elasticsearch store, media and content filter.

Layer rule: posts/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or auth/. Caller identity arrives as a plain
username string chosen by the API layer.
"""
