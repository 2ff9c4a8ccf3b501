from trueque_auth.notifications.gateway import NotificationGateway, get_gateway

__all__ = ["NotificationGateway", "get_gateway"]
