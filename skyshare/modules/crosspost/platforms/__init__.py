from . import bluesky

__all__ = ['bluesky']
