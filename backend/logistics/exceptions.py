from rest_framework.response import Response
from rest_framework.views import exception_handler

from common.errors import FleetError


def fleet_exception_handler(exc, context):
    """
    Maps engine failures to {"error": {"code", "message"}} with the error's
    own HTTP status; everything else goes through DRF's default handler.
    """
    if isinstance(exc, FleetError):
        return Response({"error": exc.as_dict()}, status=exc.status)
    return exception_handler(exc, context)
