"""auth/ -- Authentication and session package for Taskboard.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, tasks/ or client/.
api/ imports from auth/, not the other way around.
"""
