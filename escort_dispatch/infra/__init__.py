# escort_dispatch/infra/__init__.py
