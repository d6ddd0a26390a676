"""
Slack Ticket Bot.

This package lets support operators run bulk ticket operations (assign,
close, reply, stats) by mentioning the bot in Slack with free text.
"""

__version__ = "1.0.0"
__author__ = "Support Tooling"
