from __future__ import annotations

from fastapi.routing import APIRoute
from starlette.requests import Request

from techschool.request_context import REQUEST_ID_HEADER, current_endpoint, current_request_id, request_id_from


class EndpointNameRoute(APIRoute):
    """Labels each request with its route template and a request id.

    Both values live in context variables while the handler runs, so the
    slow query logger in `techschool.db` can attribute SQL to an endpoint.
    The id is echoed back in the `X-Request-ID` response header.
    """

    def get_route_handler(self):
        handler = super().get_route_handler()
        label = f"{','.join(sorted(self.methods or ()))} {self.path_format}"

        async def labelled_handler(request: Request):
            request_id = request_id_from(request.headers.get(REQUEST_ID_HEADER))
            endpoint_token = current_endpoint.set(label)
            request_token = current_request_id.set(request_id)
            try:
                response = await handler(request)
            finally:
                current_request_id.reset(request_token)
                current_endpoint.reset(endpoint_token)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        return labelled_handler
