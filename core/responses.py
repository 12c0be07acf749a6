from rest_framework import status as http_status
from rest_framework.response import Response


def api_response(message, data=None, status=http_status.HTTP_200_OK):
    """Successful response in the ``{"success", "message", "data"}`` envelope."""
    payload = {'success': True, 'message': message}
    if data is not None:
        payload['data'] = data
    return Response(payload, status=status)
