# escort_dispatch/core/__init__.py
