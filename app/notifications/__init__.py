"""
Notifications app for in-app and email notification delivery.

This app provides:
- Notification model storing rendered user notifications
- NotificationService for centralized notification creation
- Celery tasks for async email delivery and retries
- REST API for listing and managing notifications

Usage:
    from notifications.services import notification_service

    result = notification_service.notify(
        recipient=user,
        type_key="payment_succeeded",
        data={"payment_id": str(payment.id), "amount": "500.00"},
        idempotency_key=f"payment_succeeded:{payment.id}",
    )
"""
