"""
External service clients: inventory sources, SMTP and Telegram.
"""
