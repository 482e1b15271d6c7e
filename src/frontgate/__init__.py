"""frontgate - edge process serving a single-page app and proxying /api and /ws."""

__version__ = "0.1.0"

__all__ = ["create_app"]


def create_app(*args, **kwargs):
    from .server import create_app as _create_app

    return _create_app(*args, **kwargs)
