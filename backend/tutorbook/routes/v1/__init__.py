"""Version 1 API routers, mounted under ``/api/v1`` by the application factory."""
