"""
Telegram notifications and command handling.
"""
