from .feed_model import FeedModel

__all__ = ["FeedModel"]
