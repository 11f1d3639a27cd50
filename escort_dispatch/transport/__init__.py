# escort_dispatch/transport/__init__.py
