"""TradingView Relay - forward TradingView alerts to Telegram chats."""

__version__ = "0.1.0"
