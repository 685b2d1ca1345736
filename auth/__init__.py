"""auth/ -- Authentication pipeline for the ridehail service.

Credential codec, token service, revocation store, actor directory and the
auth gate dependency.

Layer rule: auth/ imports only core/ + stdlib + third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
