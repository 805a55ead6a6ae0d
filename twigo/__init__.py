"""A Flask and MongoDB social-network JSON API with users, posts, follows and products."""

__version__ = "0.1.0"