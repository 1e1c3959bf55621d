"""Contains utilities that are not specific to the domain of join ordering and statistics."""

import lazy_loader

__getattr__, __dir__, __all__ = lazy_loader.attach_stub(
    __name__,
    __file__,
)
