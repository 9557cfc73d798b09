"""Command Tower

A terminal tool that shows a random Commander commander, fetches its average
EDHREC decklist and prices it through Scryfall, with back/forward navigation
over everything shown in the session.
"""

__version__ = "0.1.0"
__author__ = "Command Tower"
__description__ = "Browse random commanders with their average decklist and price"
