"""auth/ -- Session authentication package for the GeekCraft server.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or game/.
api/ imports from auth/, not the other way around.
"""
