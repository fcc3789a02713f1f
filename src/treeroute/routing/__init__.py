"""Routing — directory discovery, naming conventions, and route file loading.

Routes are discovered once per mount and described by immutable
descriptors; nothing here touches the host app.
"""
