"""
Signals for Supplyman.

notification_created is sent after the transaction that created the
notification commits, so receivers never see rolled back rows.

    from supplyman.signals import notification_created

    @receiver(notification_created)
    def push(sender, notification, **kwargs):
        ...
"""

from django.dispatch import Signal

# Sent with sender=Notification, notification=<instance>
notification_created = Signal()
