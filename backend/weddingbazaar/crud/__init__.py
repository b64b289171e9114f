from . import crud_booking, crud_service, crud_subscription
