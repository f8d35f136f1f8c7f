"""auth/ -- Authentication and authorization package for GeoConnect.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or posts/.
api/ imports from auth/, not the other way around.
"""
