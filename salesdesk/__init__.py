"""SalesDesk - feedback voice notes for the sales management back office."""

__version__ = "0.1.0"
