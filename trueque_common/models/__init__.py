from trueque_common.models.user import CurrentUser

__all__ = ["CurrentUser"]
