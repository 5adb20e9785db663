"""Notification service entrypoint.

Listens for fire alarm transitions on the event bus and sends Gmail
and/or Slack notifications.

Usage: python -m igneo.notifications
"""

from igneo.notifications.service import main

if __name__ == "__main__":
    main()
