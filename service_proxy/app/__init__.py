"""
Frontend proxy service.

Serves versioned static builds from object storage behind a catalog of
applications and versions, with GitHub login and webhook automation.
"""
